"""Depth-indexed reservoir components. 按深度索引的储层组件。

The reservoir keeps one fixed random recurrent matrix per trie depth. A
sequence is embedded by walking the trie from the root and, at every step,
propagating the shared state through the matrix of the current depth:
``h <- alpha * tanh(W[depth] @ h + noise)``. Only the readout is trained.
储层为字典树的每一层保存一个固定的随机递归矩阵。嵌入一个序列时从根节点出发沿字典树行走，
每一步用当前深度的矩阵更新共享状态：``h <- alpha * tanh(W[depth] @ h + noise)``。
只有读出层参与训练。
"""

import time
from dataclasses import dataclass
from typing import List, Optional

import torch
import torch.nn as nn

from .errors import ConfigurationError
from .trie import SymbolSeq, Trie, TrieNode, to_symbols


@dataclass
class TRLMConfig:
    """Hyper-parameters of the trie reservoir model. 字典树储层模型的超参数。

    Attributes:
        alphabet_size (int): Number of valid symbols, at most ``256``. 合法符号数量，最多 ``256``。
        reservoir_size (int): Reservoir width ``R``. 储层维度 ``R``。
        max_depth (int): Trie depth ``D`` and number of reservoir matrices. 字典树深度 ``D``，即储层矩阵数量。
        alpha (float): Decay applied after ``tanh``, in ``(0, 1)``. ``tanh`` 之后的衰减系数。
        rho (float): Target mean absolute entry of each matrix. 每个矩阵元素平均绝对值的目标值。
        out_dim (int): Number of output classes. 输出类别数。
        noise_scale (float): Amplitude of uniform state noise, ``0`` freezes it. 状态噪声幅度，``0`` 表示关闭。
        readout_scale (float): Amplitude of the readout weight init. 读出权重初始化幅度。
        scale_eps (float): Mean-abs threshold below which scaling is skipped. 低于该值时不缩放。
        input_scale (float): Amplitude of the symbol drive table, ``0`` disables it. 符号驱动表幅度，``0`` 表示关闭。
        lr (float): Base learning rate. 基础学习率。
        lr_decay (float): Multiplicative learning-rate decay factor. 学习率衰减因子。
        decay_every (int): Epoch interval between decays. 两次衰减之间的轮数。
        epochs (int): Number of training epochs. 训练轮数。
        log_every (int): Print progress every N epochs, ``0`` is silent. 每 N 轮打印一次，``0`` 为静默。
        seed (Optional[int]): Random seed, ``None`` seeds from the clock. 随机种子，``None`` 时使用时间种子。
        dtype (torch.dtype): Floating point dtype. 浮点类型。
        device (Optional[str]): Target device, e.g. ``cpu``/``cuda``. 目标设备。
    """

    alphabet_size: int = 256
    reservoir_size: int = 64
    max_depth: int = 16
    alpha: float = 0.85
    rho: float = 0.9
    out_dim: int = 4
    noise_scale: float = 0.01
    readout_scale: float = 0.01
    scale_eps: float = 1e-5
    input_scale: float = 0.0  # 0 keeps the pure depth-indexed recurrence
    lr: float = 0.01
    lr_decay: float = 0.9
    decay_every: int = 20
    epochs: int = 100
    log_every: int = 0
    seed: Optional[int] = None
    dtype: torch.dtype = torch.float32
    device: Optional[str] = None

    def __post_init__(self):
        if not 1 <= self.alphabet_size <= 256:
            raise ConfigurationError(
                f"alphabet_size must be in [1, 256], got {self.alphabet_size}"
            )
        for name in ("reservoir_size", "max_depth", "out_dim", "decay_every"):
            if getattr(self, name) < 1:
                raise ConfigurationError(
                    f"{name} must be >= 1, got {getattr(self, name)}"
                )
        if not 0.0 < self.alpha < 1.0:
            raise ConfigurationError(f"alpha must be in (0, 1), got {self.alpha}")
        if self.rho <= 0:
            raise ConfigurationError(f"rho must be > 0, got {self.rho}")
        for name in ("noise_scale", "readout_scale", "scale_eps", "input_scale"):
            if getattr(self, name) < 0:
                raise ConfigurationError(
                    f"{name} must be >= 0, got {getattr(self, name)}"
                )
        if self.lr <= 0:
            raise ConfigurationError(f"lr must be > 0, got {self.lr}")
        if not 0.0 < self.lr_decay <= 1.0:
            raise ConfigurationError(
                f"lr_decay must be in (0, 1], got {self.lr_decay}"
            )
        if self.epochs < 0 or self.log_every < 0:
            raise ConfigurationError("epochs and log_every must be >= 0")


def make_generator(seed: Optional[int] = None) -> torch.Generator:
    """Create the model-wide random source, seeded once. 创建只播种一次的随机源。"""
    if seed is None:
        seed = time.time_ns() & 0xFFFF_FFFF_FFFF
    return torch.Generator().manual_seed(seed)


def _uniform(
    shape, generator: torch.Generator, dtype: torch.dtype = torch.float32
) -> torch.Tensor:
    """Sample ``shape`` uniformly in ``[-1, 1]`` on the CPU."""
    return torch.rand(shape, generator=generator, dtype=dtype) * 2 - 1


class ReservoirBank(nn.Module):
    """Fixed bank of ``depth_count`` square recurrent matrices. 固定的深度索引递归矩阵组。

    Attributes:
        weights (torch.Tensor): Buffer ``(depth_count, R, R)``, never trained. 不参与训练的缓冲区。
        w_in (torch.Tensor): Symbol drive table ``(alphabet_size, R)``, all zeros when disabled.
            符号驱动表，关闭时全为零。
        scales (List[float]): Factor applied to each matrix at init. 初始化时每个矩阵的缩放因子。
    """

    def __init__(
        self,
        depth_count: int,
        reservoir_size: int,
        rho: float,
        *,
        eps: float = 1e-5,
        input_scale: float = 0.0,
        alphabet_size: int = 256,
        generator: Optional[torch.Generator] = None,
        dtype: torch.dtype = torch.float32,
        device: Optional[torch.device] = None,
    ):
        """Sample and scale every matrix once. 一次性采样并缩放全部矩阵。

        Args:
            depth_count (int): Number of depth levels ``D``. 深度层数 ``D``。
            reservoir_size (int): Reservoir width ``R``. 储层维度 ``R``。
            rho (float): Target mean absolute entry. 元素平均绝对值的目标值。
            eps (float): Degeneracy threshold for the scaling heuristic. 缩放启发式的退化阈值。
            input_scale (float): Amplitude of the symbol drive table. 符号驱动表幅度。
            alphabet_size (int): Rows of the symbol drive table. 符号驱动表行数。
            generator (Optional[torch.Generator]): Shared random source. 共享随机源。
            dtype (torch.dtype): Floating point dtype. 浮点类型。
            device (Optional[torch.device]): Target device. 目标设备。
        """
        super().__init__()
        if depth_count < 1 or reservoir_size < 1:
            raise ConfigurationError(
                f"invalid bank shape ({depth_count}, {reservoir_size}, {reservoir_size})"
            )
        gen = generator if generator is not None else make_generator()

        W = _uniform((depth_count, reservoir_size, reservoir_size), gen, dtype)
        self.scales: List[float] = [
            self._mean_abs_scale_(W[l], rho, eps) for l in range(depth_count)
        ]
        self.register_buffer("weights", W.to(device=device))

        # the symbol drive, analogous to Win @ u in a classic ESN
        w_in = torch.zeros(alphabet_size, reservoir_size, dtype=dtype)
        if input_scale > 0:
            w_in = _uniform((alphabet_size, reservoir_size), gen, dtype) * input_scale
        self.register_buffer("w_in", w_in.to(device=device))
        self.input_scale = input_scale

    def __len__(self) -> int:
        return self.weights.shape[0]

    def __getitem__(self, depth: int) -> torch.Tensor:
        if not 0 <= depth < len(self):
            raise IndexError(f"depth {depth} outside bank of length {len(self)}")
        return self.weights[depth]

    @property
    def reservoir_size(self) -> int:
        return self.weights.shape[1]

    @staticmethod
    def _mean_abs_scale_(W: torch.Tensor, rho: float, eps: float = 1e-5) -> float:
        """Rescale ``W`` in place so its mean absolute entry equals ``rho``. 原地缩放使元素平均绝对值等于 ``rho``。

        This is a cheap stand-in for spectral-radius control, not a true
        eigenvalue normalisation.
        这是谱半径控制的廉价近似，而非真正的特征值归一化。

        Args:
            W (torch.Tensor): Matrix to scale. 需要缩放的矩阵。
            rho (float): Target mean absolute entry. 目标平均绝对值。
            eps (float): Below this mean the matrix is left untouched. 平均值低于该阈值时不缩放。

        Returns:
            float: The factor applied, ``1.0`` for degenerate matrices. 实际使用的缩放因子。
        """
        with torch.no_grad():
            mean_abs = W.abs().mean().item()
            scale = rho / mean_abs if mean_abs > eps else 1.0
            W.mul_(scale)
        return scale


@dataclass
class TraversalResult:
    """Outcome of one trie walk. 一次字典树遍历的结果。

    Attributes:
        state (torch.Tensor): Final reservoir state ``(R,)``. 最终储层状态。
        steps (int): Number of reservoir updates applied. 执行的储层更新次数。
        matched (bool): False if a missing edge stopped the walk early. 是否因缺边提前终止。
        node (TrieNode): Node where the walk ended. 遍历结束的节点。
    """

    state: torch.Tensor
    steps: int
    matched: bool
    node: TrieNode


class TrieReservoir(nn.Module):
    """Reservoir dynamics driven by a trie walk. 由字典树遍历驱动的储层动力学。

    Attributes:
        cfg (TRLMConfig): Configuration object storing hyper-parameters. 存放超参数的配置对象。
        bank (ReservoirBank): Depth-indexed recurrent matrices. 按深度索引的递归矩阵。
        generator (torch.Generator): Source of the per-step noise. 每步噪声的随机源。
    """

    def __init__(self, cfg: TRLMConfig, generator: Optional[torch.Generator] = None):
        super().__init__()
        self.cfg = cfg
        self.generator = generator if generator is not None else make_generator(cfg.seed)
        self.bank = ReservoirBank(
            cfg.max_depth,
            cfg.reservoir_size,
            cfg.rho,
            eps=cfg.scale_eps,
            input_scale=cfg.input_scale,
            alphabet_size=cfg.alphabet_size,
            generator=self.generator,
            dtype=cfg.dtype,
            device=cfg.device,
        )
        if len(self.bank) != cfg.max_depth:
            raise ConfigurationError(
                f"bank holds {len(self.bank)} matrices, expected {cfg.max_depth}"
            )

    def zero_state(self) -> torch.Tensor:
        return torch.zeros(
            self.cfg.reservoir_size, dtype=self.cfg.dtype, device=self.bank.weights.device
        )

    @torch.no_grad()
    def step(
        self, depth: int, state: torch.Tensor, symbol: Optional[int] = None
    ) -> torch.Tensor:
        """Advance ``state`` in place with the matrix at ``depth``. 用 ``depth`` 层矩阵原地更新状态。

        Args:
            depth (int): Depth of the node the walk is leaving. 当前离开节点的深度。
            state (torch.Tensor): Reservoir state ``(R,)``, overwritten. 储层状态，会被覆盖。
            symbol (Optional[int]): Symbol being consumed, used by the drive table. 当前消耗的符号。

        Returns:
            torch.Tensor: ``state`` after the update. 更新后的 ``state``。
        """
        drive = None
        if symbol is not None and self.bank.input_scale > 0:
            drive = self.bank.w_in[symbol]
        return reservoir_step(
            self.bank[depth],
            state,
            alpha=self.cfg.alpha,
            noise_scale=self.cfg.noise_scale,
            generator=self.generator,
            drive=drive,
        )

    @torch.no_grad()
    def traverse(
        self, trie: Trie, seq: SymbolSeq, state: Optional[torch.Tensor] = None
    ) -> TraversalResult:
        """Walk ``trie`` along ``seq`` updating the state at every edge. 沿序列遍历字典树并逐边更新状态。

        The walk stops silently at the first missing edge or at
        ``trie.max_depth``; the trie is never extended.
        遇到第一个缺失的边或到达 ``trie.max_depth`` 时静默停止，不会扩展字典树。
        """
        self._check_trie(trie)
        if state is None:
            state = self.zero_state()
        elif state.shape != (self.cfg.reservoir_size,):
            raise ConfigurationError(
                f"state shape {tuple(state.shape)} != ({self.cfg.reservoir_size},)"
            )

        symbols = to_symbols(seq, trie.alphabet_size)
        limit = min(len(symbols), trie.max_depth)
        cur = trie.root
        steps = 0
        for s in symbols[:limit]:
            nxt = cur.children.get(s)
            if nxt is None:
                break
            # the weights of the depth we are leaving, not the child's
            self.step(cur.depth, state, s)
            cur = nxt
            steps += 1
        return TraversalResult(state=state, steps=steps, matched=steps == limit, node=cur)

    def forward(
        self, trie: Trie, seq: SymbolSeq, state: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        """Return the fixed-size embedding of ``seq``. 返回序列的定长嵌入。"""
        return self.traverse(trie, seq, state).state

    def _check_trie(self, trie: Trie):
        if trie.max_depth > len(self.bank):
            raise ConfigurationError(
                f"trie depth {trie.max_depth} exceeds bank length {len(self.bank)}"
            )
        if trie.alphabet_size > self.cfg.alphabet_size:
            raise ConfigurationError(
                f"trie alphabet {trie.alphabet_size} exceeds configured {self.cfg.alphabet_size}"
            )


@torch.no_grad()
def reservoir_step(
    W: torch.Tensor,
    state: torch.Tensor,
    *,
    alpha: float,
    noise_scale: float = 0.0,
    generator: Optional[torch.Generator] = None,
    drive: Optional[torch.Tensor] = None,
) -> torch.Tensor:
    """Compute ``state <- alpha * tanh(W @ state + drive + noise)`` in place. 原地计算一步储层更新。

    Args:
        W (torch.Tensor): Recurrent matrix ``(R, R)``. 递归矩阵。
        state (torch.Tensor): Reservoir state ``(R,)``, overwritten. 储层状态，会被覆盖。
        alpha (float): Decay applied after ``tanh``. ``tanh`` 之后的衰减系数。
        noise_scale (float): Amplitude of uniform noise in ``[-1, 1]``. 均匀噪声幅度。
        generator (Optional[torch.Generator]): Noise source. 噪声随机源。
        drive (Optional[torch.Tensor]): Extra pre-activation input ``(R,)``. 额外的预激活输入。

    Returns:
        torch.Tensor: ``state`` after the update. 更新后的 ``state``。
    """
    R = state.shape[0]
    if state.dim() != 1 or W.shape != (R, R):
        raise ConfigurationError(
            f"matrix {tuple(W.shape)} incompatible with state {tuple(state.shape)}"
        )
    raw = W @ state
    if drive is not None:
        raw = raw + drive
    if noise_scale > 0:
        noise = _uniform(R, generator, state.dtype).to(state.device)
        raw = raw + noise_scale * noise
    state.copy_(alpha * torch.tanh(raw))
    return state
