"""Depth-bounded prefix tree over byte symbols. 深度受限的字节前缀树。

Each node records its depth (root is ``0``) and whether an inserted sequence
ends there. Children live in a sparse ``dict`` keyed by symbol, so memory
grows with the number of edges rather than ``nodes x alphabet``.
每个节点记录深度（根为 ``0``）以及是否有插入的序列在此结束。子节点保存在以符号为键的
稀疏 ``dict`` 中，内存随边数增长。
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Union

from .errors import ConfigurationError, OutOfRangeSymbol

SymbolSeq = Union[str, bytes, bytearray, Sequence[int]]


def to_symbols(seq: SymbolSeq, alphabet_size: int = 256) -> List[int]:
    """Normalise ``seq`` to a list of integer symbols. 将输入序列转换为整数符号列表。

    Args:
        seq (SymbolSeq): ``str`` (encoded as UTF-8), ``bytes``/``bytearray`` or a
            sequence of ints. 字符串按 UTF-8 编码，或字节串、整数序列。
        alphabet_size (int): Exclusive upper bound for symbol values. 符号值的上界（不含）。

    Returns:
        List[int]: Symbols in input order. 按输入顺序排列的符号。

    Raises:
        OutOfRangeSymbol: If any symbol is outside ``[0, alphabet_size)``.
    """
    if isinstance(seq, str):
        seq = seq.encode("utf-8")
    symbols = [int(s) for s in seq]
    for s in symbols:
        if s < 0 or s >= alphabet_size:
            raise OutOfRangeSymbol(s, alphabet_size)
    return symbols


@dataclass
class TrieNode:
    """Single trie node. 单个字典树节点。

    Attributes:
        depth (int): Distance from the root, root is ``0``. 距根节点的深度。
        is_leaf (bool): True if an inserted sequence ends exactly here. 是否有序列在此结束。
        children (Dict[int, TrieNode]): Child nodes keyed by symbol. 以符号为键的子节点。
    """

    depth: int = 0
    is_leaf: bool = False
    children: Dict[int, "TrieNode"] = field(default_factory=dict)

    def child(self, symbol: int) -> Optional["TrieNode"]:
        return self.children.get(symbol)


class Trie:
    """Write-once prefix tree truncated at ``max_depth``. 写入后只读、截断于 ``max_depth`` 的前缀树。

    Attributes:
        max_depth (int): Maximum number of edges on any root-to-node path. 任意路径的最大边数。
        alphabet_size (int): Number of valid symbols, at most ``256``. 合法符号数量，最多 ``256``。
        root (TrieNode): Depth-0 node owning the whole tree. 拥有整棵树的根节点。
    """

    def __init__(self, max_depth: int = 16, alphabet_size: int = 256):
        if max_depth < 1:
            raise ConfigurationError(f"max_depth must be >= 1, got {max_depth}")
        if not 1 <= alphabet_size <= 256:
            raise ConfigurationError(
                f"alphabet_size must be in [1, 256], got {alphabet_size}"
            )
        self.max_depth = max_depth
        self.alphabet_size = alphabet_size
        self.root = TrieNode(depth=0)
        self._n_nodes = 1
        self._n_sequences = 0

    def insert(self, seq: SymbolSeq) -> TrieNode:
        """Insert ``seq``, silently truncated to ``max_depth`` symbols. 插入序列，超过 ``max_depth`` 的部分被截断。

        Args:
            seq (SymbolSeq): Sequence to insert. 待插入的序列。

        Returns:
            TrieNode: The node marked as leaf, at depth ``min(len(seq), max_depth)``.
            被标记为叶子的节点。
        """
        cur = self.root
        for s in to_symbols(seq, self.alphabet_size)[: self.max_depth]:
            nxt = cur.children.get(s)
            if nxt is None:
                nxt = TrieNode(depth=cur.depth + 1)
                cur.children[s] = nxt
                self._n_nodes += 1
            cur = nxt
        if not cur.is_leaf:
            self._n_sequences += 1
        cur.is_leaf = True
        return cur

    def find(self, prefix: SymbolSeq) -> Optional[TrieNode]:
        """Return the node reached by ``prefix`` or ``None`` if an edge is missing.

        Lookup follows the same truncation as insertion, so only the first
        ``max_depth`` symbols are considered.
        """
        cur = self.root
        for s in to_symbols(prefix, self.alphabet_size)[: self.max_depth]:
            cur = cur.children.get(s)
            if cur is None:
                return None
        return cur

    def __contains__(self, seq: SymbolSeq) -> bool:
        node = self.find(seq)
        return node is not None and node.is_leaf

    def __len__(self) -> int:
        return self._n_sequences

    @property
    def node_count(self) -> int:
        return self._n_nodes

    def depth(self) -> int:
        """Depth of the deepest node currently in the tree."""
        deepest = 0
        stack = [self.root]
        while stack:
            node = stack.pop()
            deepest = max(deepest, node.depth)
            stack.extend(node.children.values())
        return deepest


def build_trie(
    vocabulary: Iterable[SymbolSeq], max_depth: int = 16, alphabet_size: int = 256
) -> Trie:
    """Build a trie holding every entry of ``vocabulary``. 由词表构建字典树。"""
    trie = Trie(max_depth=max_depth, alphabet_size=alphabet_size)
    for word in vocabulary:
        trie.insert(word)
    return trie
