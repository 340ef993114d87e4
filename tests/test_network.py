import pytest
import torch

from dodger_ai.config import FEATURE_SIZE, NUM_ACTIONS
from dodger_ai.model.network import DenseLayer, PolicyValueNetwork


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_forward_returns_value_and_policy_simplex(small_topology):
    network = PolicyValueNetwork(small_topology)

    value, policy = network.forward([0.1] * FEATURE_SIZE)

    assert -1.0 <= value <= 1.0
    assert len(policy) == NUM_ACTIONS
    assert all(p >= 0 for p in policy)
    assert sum(policy) == pytest.approx(1.0, abs=1e-5)


def test_initial_weights_respect_xavier_bounds(small_topology):
    network = PolicyValueNetwork(small_topology)
    layer = network.layers["inputLayer"]
    bound = (6.0 / (FEATURE_SIZE + 16)) ** 0.5

    assert layer.weights.shape == (16, FEATURE_SIZE)
    assert float(layer.weights.abs().max()) <= bound + 1e-6
    assert float(layer.biases.abs().max()) <= 0.1 + 1e-6


def test_wrong_input_length_gives_neutral_output(small_topology):
    network = PolicyValueNetwork(small_topology)

    value, policy = network.forward([0.0] * 7)

    assert value == 0.0
    assert policy == pytest.approx([1.0 / NUM_ACTIONS] * NUM_ACTIONS)


def test_bad_layer_is_rebuilt_then_zeroed_during_cooldown(small_topology):
    clock = FakeClock()
    network = PolicyValueNetwork(small_topology, clock=clock)
    broken = DenseLayer("hiddenLayer1", 16, 12, torch.zeros(3, 3), torch.zeros(3))

    network.layers = {**network.layers, "hiddenLayer1": broken}
    value, policy = network.forward([0.2] * FEATURE_SIZE)

    assert network.layers["hiddenLayer1"].weights.shape == (12, 16)
    assert len(policy) == NUM_ACTIONS
    assert sum(policy) == pytest.approx(1.0, abs=1e-5)

    network.layers = {**network.layers, "hiddenLayer1": broken}
    clock.now += 0.5
    value, policy = network.forward([0.2] * FEATURE_SIZE)

    assert network.layers["hiddenLayer1"] is broken
    assert -1.0 <= value <= 1.0
    assert sum(policy) == pytest.approx(1.0, abs=1e-5)

    clock.now += 2.0
    network.forward([0.2] * FEATURE_SIZE)
    assert network.layers["hiddenLayer1"].has_valid_shape()


def test_import_keeps_missing_layers_and_resets_bad_ones(small_topology):
    source = PolicyValueNetwork(small_topology)
    target = PolicyValueNetwork(small_topology)
    kept = target.layers["valueHead"]
    document = source.export_layers()
    del document["valueHead"]
    document["hiddenLayer2"] = {"weights": [[1.0, 2.0]], "biases": [0.0]}

    accepted = target.import_layers(document)

    assert accepted == len(small_topology.layer_shapes) - 2
    assert target.layers["valueHead"] is kept
    assert target.layers["hiddenLayer2"].weights.shape == (10, 12)
    assert torch.equal(target.layers["inputLayer"].weights, source.layers["inputLayer"].weights)


def test_bias_nudge_moves_value_and_chosen_policy_bias(small_topology):
    network = PolicyValueNetwork(small_topology)
    value_bias = network.layers["valueHead"].biases.clone()
    policy_bias = network.layers["policyHead"].biases.clone()

    network.nudge_biases(value_error=2.0, action=3, learning_rate=0.5)

    assert torch.allclose(network.layers["valueHead"].biases, value_bias + 1.0)
    shifted = network.layers["policyHead"].biases - policy_bias
    assert float(shifted[3]) == pytest.approx(1.0)
    assert float(shifted.abs().sum()) == pytest.approx(1.0)
