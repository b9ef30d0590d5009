from typing import Iterable, Optional, Tuple

import torch
import torch.nn as nn

from .errors import ConfigurationError
from .readout import ReadoutModel
from .reservoir import TraversalResult, TrieReservoir, TRLMConfig, make_generator
from .train import TrainHistory, train
from .trie import SymbolSeq, Trie, build_trie


class TrieReservoirModel(nn.Module):
    """Trie, fixed reservoir bank and trainable readout in one object. 字典树、固定储层与可训练读出层的组合。

    Attributes:
        cfg (TRLMConfig): Configuration object storing hyper-parameters. 存放超参数的配置对象。
        generator (torch.Generator): Random source shared by init and noise. 初始化与噪声共享的随机源。
        trie (Trie): Read-only prefix tree. 只读前缀树。
        reservoir (TrieReservoir): Depth-indexed dynamics. 按深度索引的动力学。
        readout (ReadoutModel): Softmax readout. Softmax 读出层。
    """

    def __init__(
        self,
        cfg: TRLMConfig,
        vocabulary: Optional[Iterable[SymbolSeq]] = None,
        *,
        trie: Optional[Trie] = None,
    ):
        """Build the trie, then the reservoir bank, then the readout. 依次构建字典树、储层与读出层。

        Args:
            cfg (TRLMConfig): Model configuration. 模型配置。
            vocabulary (Optional[Iterable[SymbolSeq]]): Sequences to insert. 需要插入的序列。
            trie (Optional[Trie]): Pre-built trie, exclusive with ``vocabulary``. 预先构建的字典树。
        """
        super().__init__()
        if trie is not None and vocabulary is not None:
            raise ConfigurationError("pass either vocabulary or trie, not both")
        if trie is None:
            trie = build_trie(vocabulary or (), cfg.max_depth, cfg.alphabet_size)
        if trie.max_depth != cfg.max_depth:
            raise ConfigurationError(
                f"trie depth {trie.max_depth} != configured max_depth {cfg.max_depth}"
            )

        self.cfg = cfg
        self.trie = trie
        self.generator = make_generator(cfg.seed)
        self.reservoir = TrieReservoir(cfg, generator=self.generator)
        self.readout = ReadoutModel(
            cfg.reservoir_size,
            cfg.out_dim,
            init_scale=cfg.readout_scale,
            generator=self.generator,
            dtype=cfg.dtype,
            device=cfg.device,
        )

    def traverse(self, seq: SymbolSeq) -> TraversalResult:
        return self.reservoir.traverse(self.trie, seq)

    def embed(self, seq: SymbolSeq) -> torch.Tensor:
        """Reservoir state of ``seq`` starting from zeros. 从零状态出发的序列嵌入。"""
        return self.reservoir(self.trie, seq)

    def predict(self, seq: SymbolSeq) -> torch.Tensor:
        return self.readout(self.embed(seq))

    def classify(self, seq: SymbolSeq) -> int:
        return int(self.predict(seq).argmax().item())

    def train_step(
        self, seq: SymbolSeq, gold_index: int, lr: Optional[float] = None
    ) -> torch.Tensor:
        return self.readout.train_step(
            self.embed(seq), gold_index, self.cfg.lr if lr is None else lr
        )

    def fit(self, examples: Iterable[Tuple[SymbolSeq, int]], **kwargs) -> TrainHistory:
        return train(self, examples, **kwargs)
