import pytest
import torch

from TRLM import (
    ConfigurationError,
    OutOfRangeSymbol,
    ReservoirBank,
    TrieReservoir,
    TRLMConfig,
    Trie,
    build_trie,
    make_generator,
    reservoir_step,
)


@pytest.fixture
def cat_dog_trie():
    return build_trie(["cat", "dog"])


def test_bank_mean_abs_matches_rho():
    bank = ReservoirBank(6, 32, 0.9, generator=make_generator(0))

    assert len(bank) == 6
    assert bank.weights.shape == (6, 32, 32)
    for l in range(len(bank)):
        assert bank[l].abs().mean().item() == pytest.approx(0.9, rel=1e-4)
        assert bank.scales[l] > 0


def test_bank_matrices_are_independent():
    bank = ReservoirBank(3, 16, 0.9, generator=make_generator(1))
    assert not torch.allclose(bank[0], bank[1])
    assert not torch.allclose(bank[1], bank[2])


def test_degenerate_matrix_keeps_unit_scale():
    W = torch.zeros(4, 4)
    assert ReservoirBank._mean_abs_scale_(W, 0.9) == 1.0
    assert torch.equal(W, torch.zeros(4, 4))

    tiny = torch.full((4, 4), 1e-7)
    before = tiny.clone()
    assert ReservoirBank._mean_abs_scale_(tiny, 0.9, eps=1e-5) == 1.0
    assert torch.equal(tiny, before)


def test_bank_is_reproducible_with_seed():
    a = ReservoirBank(2, 8, 0.9, generator=make_generator(7))
    b = ReservoirBank(2, 8, 0.9, generator=make_generator(7))
    assert torch.equal(a.weights, b.weights)


def test_bank_index_out_of_range():
    bank = ReservoirBank(2, 4, 0.9, generator=make_generator(0))
    with pytest.raises(IndexError):
        bank[2]


def test_drive_table_disabled_by_default():
    bank = ReservoirBank(2, 4, 0.9, generator=make_generator(0))
    assert torch.count_nonzero(bank.w_in) == 0
    driven = ReservoirBank(2, 4, 0.9, input_scale=0.5, generator=make_generator(0))
    assert driven.w_in.abs().max().item() <= 0.5


def test_reservoir_step_matches_manual_update():
    W = torch.tensor([[0.5, -0.4], [0.1, 0.2]])
    h = torch.tensor([0.3, -0.7])
    expected = 0.85 * torch.tanh(W @ h)

    out = reservoir_step(W, h, alpha=0.85)

    assert out is h
    assert torch.allclose(h, expected, atol=1e-6)


def test_reservoir_step_noise_is_bounded():
    gen = make_generator(3)
    W = torch.rand(16, 16, generator=gen) * 2 - 1
    h = torch.rand(16, generator=gen)
    clean = 0.85 * torch.tanh(W @ h)

    reservoir_step(W, h, alpha=0.85, noise_scale=0.01, generator=gen)

    # tanh is 1-Lipschitz
    assert (h - clean).abs().max().item() <= 0.85 * 0.01 + 1e-6
    assert h.abs().max().item() <= 0.85 + 1e-6


def test_reservoir_step_shape_mismatch_raises():
    with pytest.raises(ConfigurationError):
        reservoir_step(torch.zeros(3, 3), torch.zeros(4), alpha=0.5)


def test_traverse_stops_at_missing_edge(cat_dog_trie):
    cfg = TRLMConfig(reservoir_size=16, seed=11)
    full = TrieReservoir(cfg).traverse(cat_dog_trie, "cat")
    longer = TrieReservoir(cfg).traverse(cat_dog_trie, "catalog")

    assert full.steps == 3 and full.matched
    assert longer.steps == 3 and not longer.matched
    assert longer.node is cat_dog_trie.find("cat")
    assert torch.equal(full.state, longer.state)
    # the trie is never extended by a forward pass
    assert cat_dog_trie.node_count == 7


def test_traverse_unknown_first_symbol_returns_zero_state(cat_dog_trie):
    res = TrieReservoir(TRLMConfig(reservoir_size=8, seed=0)).traverse(cat_dog_trie, "zebra")
    assert res.steps == 0
    assert not res.matched
    assert torch.count_nonzero(res.state) == 0


def test_forward_uses_weights_of_depth_being_left(cat_dog_trie):
    cfg = TRLMConfig(reservoir_size=8, noise_scale=0.0, input_scale=0.5, seed=5)
    reservoir = TrieReservoir(cfg)

    h = torch.zeros(8)
    for depth, sym in enumerate(b"dog"):
        W = reservoir.bank[depth]
        h = cfg.alpha * torch.tanh(W @ h + reservoir.bank.w_in[sym])

    out = reservoir(cat_dog_trie, "dog")
    assert torch.allclose(out, h, atol=1e-6)


def test_forward_updates_caller_state_in_place(cat_dog_trie):
    reservoir = TrieReservoir(TRLMConfig(reservoir_size=8, seed=2))
    state = reservoir.zero_state()
    out = reservoir(cat_dog_trie, "cat", state)
    assert out is state
    assert torch.count_nonzero(state) > 0


def test_forward_is_deterministic_when_noise_frozen(cat_dog_trie):
    cfg = TRLMConfig(reservoir_size=8, noise_scale=0.0, input_scale=1.0, seed=9)
    reservoir = TrieReservoir(cfg)
    assert torch.equal(reservoir(cat_dog_trie, "cat"), reservoir(cat_dog_trie, "cat"))
    assert not torch.equal(reservoir(cat_dog_trie, "cat"), reservoir(cat_dog_trie, "dog"))


def test_forward_wrong_state_shape_raises(cat_dog_trie):
    reservoir = TrieReservoir(TRLMConfig(reservoir_size=8, seed=0))
    with pytest.raises(ConfigurationError):
        reservoir(cat_dog_trie, "cat", torch.zeros(9))


def test_trie_deeper_than_bank_raises():
    reservoir = TrieReservoir(TRLMConfig(reservoir_size=4, max_depth=4, seed=0))
    trie = Trie(max_depth=8)
    trie.insert("abcdefgh")
    with pytest.raises(ConfigurationError):
        reservoir(trie, "abcdefgh")


def test_trie_alphabet_larger_than_config_raises(cat_dog_trie):
    reservoir = TrieReservoir(TRLMConfig(reservoir_size=4, alphabet_size=128, seed=0))
    with pytest.raises(ConfigurationError):
        reservoir(cat_dog_trie, "cat")


def test_traverse_rejects_out_of_range_symbol():
    trie = build_trie(["cat"], alphabet_size=128)
    reservoir = TrieReservoir(TRLMConfig(reservoir_size=4, alphabet_size=128, seed=0))
    with pytest.raises(OutOfRangeSymbol):
        reservoir(trie, bytes([99, 200]))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"alpha": 1.0},
        {"alpha": 0.0},
        {"rho": 0.0},
        {"reservoir_size": 0},
        {"max_depth": 0},
        {"alphabet_size": 300},
        {"noise_scale": -0.1},
        {"lr": 0.0},
        {"lr_decay": 1.5},
        {"decay_every": 0},
    ],
)
def test_invalid_config_raises(kwargs):
    with pytest.raises(ConfigurationError):
        TRLMConfig(**kwargs)
    with pytest.raises(ValueError):
        TRLMConfig(**kwargs)
