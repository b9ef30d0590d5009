"""Trie Reservoir Language Model (TRLM) module for sequence classification.

This module fuses a depth-bounded prefix trie with a depth-indexed reservoir.
Walking the trie along an input sequence selects, at every depth, a distinct
fixed random recurrent matrix that advances a shared state vector. The final
state is classified by a softmax readout, the only trained component.

Core Components:
    Trie: Write-once prefix tree truncated at ``max_depth``.
    TRLMConfig: Configuration dataclass for model hyper-parameters.
    ReservoirBank: One scaled random ``R x R`` matrix per trie depth.
    TrieReservoir: Trie-driven reservoir dynamics producing state embeddings.
    ReadoutModel: Linear + softmax readout with an online SGD step.
    TrieReservoirModel: Aggregate owning trie, reservoir and readout.

Training:
    train: Epoch loop with step-decayed learning rate.
    TrainHistory: Per-epoch losses and learning rates.

Example:
    >>> from TRLM import TRLMConfig, TrieReservoirModel
    >>>
    >>> cfg = TRLMConfig(reservoir_size=64, max_depth=16, out_dim=4, seed=0)
    >>> model = TrieReservoirModel(cfg, ["hello", "help", "helium", "cat", "dog"])
    >>> history = model.fit([("hello", 0), ("cat", 1), ("dog", 2), ("help", 3)])
    >>> probs = model.predict("hello")  # Shape: (4,)
"""

from .errors import ConfigurationError, NumericOverflow, OutOfRangeSymbol, TRLMError
from .model import TrieReservoirModel
from .readout import ReadoutModel
from .reservoir import (
    ReservoirBank,
    TraversalResult,
    TrieReservoir,
    TRLMConfig,
    make_generator,
    reservoir_step,
)
from .train import TrainHistory, train
from .trie import Trie, TrieNode, build_trie, to_symbols

__all__ = [
    # Core components
    "Trie",
    "TrieNode",
    "TRLMConfig",
    "ReservoirBank",
    "TrieReservoir",
    "TraversalResult",
    "ReadoutModel",
    "TrieReservoirModel",
    # Functions
    "build_trie",
    "to_symbols",
    "make_generator",
    "reservoir_step",
    "train",
    "TrainHistory",
    # Errors
    "TRLMError",
    "ConfigurationError",
    "OutOfRangeSymbol",
    "NumericOverflow",
]

__version__ = "0.1.0"
