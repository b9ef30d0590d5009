import math
from typing import Optional

import torch
import torch.nn as nn

from .errors import ConfigurationError, NumericOverflow


# Softmax Readout (Online SGD on Cross-Entropy)
class ReadoutModel(nn.Module):
    """Linear map from reservoir state to class probabilities. 从储层状态到类别概率的线性映射。

    Attributes:
        weight (torch.nn.Parameter): Readout matrix ``(out_dim, R)``, updated by
            :meth:`train_step` only. 读出矩阵，仅由 :meth:`train_step` 更新。
    """

    def __init__(
        self,
        reservoir_size: int,
        out_dim: int,
        *,
        init_scale: float = 0.01,
        generator: Optional[torch.Generator] = None,
        dtype: torch.dtype = torch.float32,
        device: Optional[torch.device] = None,
    ):
        super().__init__()
        if reservoir_size < 1 or out_dim < 1:
            raise ConfigurationError(
                f"invalid readout shape ({out_dim}, {reservoir_size})"
            )
        W0 = (
            torch.rand((out_dim, reservoir_size), generator=generator, dtype=dtype) * 2
            - 1
        ) * init_scale
        self.weight = nn.Parameter(W0.to(device=device), requires_grad=False)

    @property
    def out_dim(self) -> int:
        return self.weight.shape[0]

    @torch.no_grad()
    def logits(self, state: torch.Tensor) -> torch.Tensor:
        if state.shape != (self.weight.shape[1],):
            raise ConfigurationError(
                f"state shape {tuple(state.shape)} != ({self.weight.shape[1]},)"
            )
        z = self.weight @ state
        if not torch.isfinite(z).all():
            raise NumericOverflow(f"non-finite readout logits: {z.tolist()}")
        return z

    @torch.no_grad()
    def forward(self, state: torch.Tensor) -> torch.Tensor:
        """Softmax over ``weight @ state``. 对 ``weight @ state`` 做 softmax。

        Args:
            state (torch.Tensor): Reservoir state ``(R,)``. 储层状态。

        Returns:
            torch.Tensor: Probabilities ``(out_dim,)`` summing to one. 和为一的概率向量。
        """
        # torch.softmax subtracts the max logit, so large logits do not overflow
        return torch.softmax(self.logits(state), dim=0)

    predict = forward

    def loss(self, state: torch.Tensor, gold_index: int) -> float:
        """Cross-entropy of ``state`` against ``gold_index``. 交叉熵损失。"""
        self._check_gold(gold_index)
        p = self.forward(state)[gold_index].item()
        return -math.log(max(p, 1e-12))

    @torch.no_grad()
    def train_step(
        self, state: torch.Tensor, gold_index: int, lr: float
    ) -> torch.Tensor:
        """One SGD step on cross-entropy w.r.t. the readout only. 仅对读出层做一步交叉熵 SGD。

        Args:
            state (torch.Tensor): Reservoir state ``(R,)``. 储层状态。
            gold_index (int): Target class. 目标类别。
            lr (float): Learning rate. 学习率。

        Returns:
            torch.Tensor: Probabilities computed before the update. 更新前的概率。
        """
        self._check_gold(gold_index)
        if lr <= 0:
            raise ConfigurationError(f"learning rate must be > 0, got {lr}")
        probs = self.forward(state)

        # dL/dz = p - onehot(gold)
        grad = probs.clone()
        grad[gold_index] -= 1.0
        self.weight.sub_(lr * torch.outer(grad, state))
        return probs

    def _check_gold(self, gold_index: int):
        if not 0 <= gold_index < self.out_dim:
            raise ConfigurationError(
                f"gold index {gold_index} outside [0, {self.out_dim})"
            )
