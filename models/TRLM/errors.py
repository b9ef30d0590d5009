"""Error taxonomy for the trie reservoir model. 字典树储层模型的异常类型。"""


class TRLMError(Exception):
    """Base class for every error raised by ``TRLM``."""


class ConfigurationError(TRLMError, ValueError):
    """Inconsistent hyper-parameters, shapes or bank/trie sizes. 配置不一致。"""


class OutOfRangeSymbol(TRLMError, ValueError):
    """A symbol falls outside ``[0, alphabet_size)``. 符号超出字母表范围。"""

    def __init__(self, symbol: int, alphabet_size: int):
        super().__init__(
            f"symbol {symbol} out of range, alphabet size is {alphabet_size}"
        )
        self.symbol = symbol
        self.alphabet_size = alphabet_size


class NumericOverflow(TRLMError, ArithmeticError):
    """Readout produced non-finite logits or probabilities."""
