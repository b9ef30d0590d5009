import math

import pytest
import torch

from TRLM import ConfigurationError, NumericOverflow, ReadoutModel, make_generator


@pytest.fixture
def readout():
    return ReadoutModel(16, 4, generator=make_generator(0))


def test_init_is_small_and_shaped(readout):
    assert readout.weight.shape == (4, 16)
    assert readout.weight.abs().max().item() <= 0.01
    assert not readout.weight.requires_grad
    assert readout.out_dim == 4


@pytest.mark.parametrize("magnitude", [0.0, 0.1, 1.0, 100.0])
def test_forward_returns_probability_simplex(readout, magnitude):
    gen = make_generator(1)
    for _ in range(5):
        state = (torch.rand(16, generator=gen) * 2 - 1) * magnitude
        probs = readout(state)
        assert probs.shape == (4,)
        assert (probs >= 0).all()
        assert probs.sum().item() == pytest.approx(1.0, abs=1e-5)


def test_forward_matches_softmax_of_logits(readout):
    state = torch.linspace(-1, 1, 16)
    z = readout.weight @ state
    expected = torch.exp(z) / torch.exp(z).sum()
    assert torch.allclose(readout(state), expected, atol=1e-6)
    assert torch.allclose(readout.predict(state), expected, atol=1e-6)


def test_large_logits_do_not_overflow(readout):
    with torch.no_grad():
        readout.weight.fill_(0.0)
        readout.weight[2].fill_(1000.0)
    probs = readout(torch.ones(16))
    assert torch.isfinite(probs).all()
    assert probs[2].item() == pytest.approx(1.0)


def test_non_finite_state_raises(readout):
    state = torch.zeros(16)
    state[3] = float("nan")
    with pytest.raises(NumericOverflow):
        readout(state)


def test_wrong_state_shape_raises(readout):
    with pytest.raises(ConfigurationError):
        readout(torch.zeros(15))


def test_train_step_matches_manual_gradient(readout):
    state = torch.linspace(-0.5, 0.5, 16)
    before = readout.weight.detach().clone()
    probs = torch.softmax(before @ state, dim=0)

    returned = readout.train_step(state, 1, lr=0.1)

    grad = probs.clone()
    grad[1] -= 1.0
    expected = before - 0.1 * torch.outer(grad, state)
    assert torch.allclose(returned, probs, atol=1e-6)
    assert torch.allclose(readout.weight, expected, atol=1e-6)


def test_train_step_lowers_loss_on_same_state(readout):
    state = torch.linspace(-0.5, 0.5, 16)
    before = readout.loss(state, 2)
    readout.train_step(state, 2, lr=0.05)
    after = readout.loss(state, 2)
    assert after < before
    assert before == pytest.approx(-math.log(0.25), abs=0.1)


def test_zero_state_leaves_weights_unchanged(readout):
    before = readout.weight.detach().clone()
    readout.train_step(torch.zeros(16), 0, lr=0.5)
    assert torch.equal(readout.weight, before)


@pytest.mark.parametrize("gold", [-1, 4])
def test_gold_index_out_of_range_raises(readout, gold):
    with pytest.raises(ConfigurationError):
        readout.train_step(torch.zeros(16), gold, lr=0.1)


def test_non_positive_learning_rate_raises(readout):
    with pytest.raises(ConfigurationError):
        readout.train_step(torch.zeros(16), 0, lr=0.0)


def test_invalid_shape_raises():
    with pytest.raises(ConfigurationError):
        ReadoutModel(0, 4)
