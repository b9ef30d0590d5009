from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

import numpy as np

from .errors import ConfigurationError
from .trie import SymbolSeq


@dataclass
class TrainHistory:
    """Per-epoch record of a training run. 训练过程的逐轮记录。

    Attributes:
        losses (List[float]): Mean cross-entropy of each epoch, measured before each update.
            每轮平均交叉熵（更新前计算）。
        lrs (List[float]): Learning rate used in each epoch. 每轮使用的学习率。
    """

    losses: List[float] = field(default_factory=list)
    lrs: List[float] = field(default_factory=list)

    @property
    def final_loss(self) -> float:
        return self.losses[-1] if self.losses else float("nan")


def train(
    model,
    examples: Iterable[Tuple[SymbolSeq, int]],
    *,
    epochs: Optional[int] = None,
    lr: Optional[float] = None,
    lr_decay: Optional[float] = None,
    decay_every: Optional[int] = None,
    log_every: Optional[int] = None,
) -> TrainHistory:
    """Train the readout of ``model`` with step-decayed online SGD. 使用阶梯衰减的在线 SGD 训练读出层。

    Every epoch visits ``examples`` in order, embedding each sequence from a
    fresh zero state and applying one readout step with its label. After
    every ``decay_every`` epochs the learning rate is multiplied by
    ``lr_decay``. There is no early stopping.
    每轮按顺序遍历样本，从零状态嵌入每个序列并用其标签执行一步读出更新。每 ``decay_every`` 轮
    学习率乘以 ``lr_decay``，不做早停。

    Args:
        model (TrieReservoirModel): Model whose readout is trained. 需要训练读出层的模型。
        examples (Iterable[Tuple[SymbolSeq, int]]): ``(sequence, gold_index)`` pairs. 样本对。
        epochs (Optional[int]): Overrides ``cfg.epochs``. 覆盖配置中的轮数。
        lr (Optional[float]): Overrides ``cfg.lr``. 覆盖基础学习率。
        lr_decay (Optional[float]): Overrides ``cfg.lr_decay``. 覆盖衰减因子。
        decay_every (Optional[int]): Overrides ``cfg.decay_every``. 覆盖衰减间隔。
        log_every (Optional[int]): Overrides ``cfg.log_every``. 覆盖打印间隔。

    Returns:
        TrainHistory: Losses and learning rates per epoch. 每轮的损失与学习率。
    """
    cfg = model.cfg
    epochs = cfg.epochs if epochs is None else epochs
    lr = cfg.lr if lr is None else lr
    lr_decay = cfg.lr_decay if lr_decay is None else lr_decay
    decay_every = cfg.decay_every if decay_every is None else decay_every
    log_every = cfg.log_every if log_every is None else log_every

    examples = list(examples)
    if not examples:
        raise ConfigurationError("no training examples given")
    if decay_every < 1:
        raise ConfigurationError(f"decay_every must be >= 1, got {decay_every}")
    for _, gold in examples:
        if not 0 <= gold < cfg.out_dim:
            raise ConfigurationError(f"gold index {gold} outside [0, {cfg.out_dim})")

    history = TrainHistory()
    for epoch in range(epochs):
        epoch_losses = []
        for seq, gold in examples:
            state = model.embed(seq)
            probs = model.readout.train_step(state, gold, lr)
            epoch_losses.append(-np.log(max(probs[gold].item(), 1e-12)))

        history.losses.append(float(np.mean(epoch_losses)))
        history.lrs.append(lr)
        if log_every and (epoch + 1) % log_every == 0:
            print(
                f"[train] epoch {epoch + 1}/{epochs} loss={history.losses[-1]:.4f} lr={lr:.5f}"
            )

        if epoch % decay_every == decay_every - 1:
            lr *= lr_decay
    return history
