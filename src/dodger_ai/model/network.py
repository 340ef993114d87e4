"""Feed-forward policy/value network with self-healing layers."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import time
from typing import Callable, Mapping, Sequence

import torch

from dodger_ai.config import (
    BIAS_INIT_RANGE,
    LAYER_REBUILD_COOLDOWN_SECONDS,
    NETWORK_TOPOLOGY,
    POLICY_TEMPERATURE,
    USE_GPU,
    NetworkTopology,
)
from dodger_ai.runtime import get_torch_device

LOGGER = logging.getLogger("dodger_ai.network")

device = get_torch_device(prefer_gpu=USE_GPU)


@dataclass(frozen=True)
class DenseLayer:
    """One fully connected layer; ``weights`` is (outputs, inputs)."""

    name: str
    input_size: int
    output_size: int
    weights: torch.Tensor
    biases: torch.Tensor

    @classmethod
    def initialize(cls, name: str, input_size: int, output_size: int) -> "DenseLayer":
        weights = torch.empty(output_size, input_size, device=device)
        torch.nn.init.xavier_uniform_(weights)
        biases = torch.empty(output_size, device=device).uniform_(-BIAS_INIT_RANGE, BIAS_INIT_RANGE)
        return cls(name, input_size, output_size, weights, biases)

    @classmethod
    def from_tensors(cls, name: str, input_size: int, output_size: int, weights, biases) -> "DenseLayer":
        weight_tensor = torch.as_tensor(weights, dtype=torch.float32).to(device).clone()
        bias_tensor = torch.as_tensor(biases, dtype=torch.float32).to(device).clone()
        return cls(name, input_size, output_size, weight_tensor, bias_tensor)

    def has_valid_shape(self) -> bool:
        return (
            isinstance(self.weights, torch.Tensor)
            and isinstance(self.biases, torch.Tensor)
            and tuple(self.weights.shape) == (self.output_size, self.input_size)
            and tuple(self.biases.shape) == (self.output_size,)
        )

    def forward(self, inputs: torch.Tensor) -> torch.Tensor:
        return self.weights @ inputs + self.biases

    def with_biases(self, biases: torch.Tensor) -> "DenseLayer":
        return replace(self, biases=biases)

    def to_dict(self) -> dict[str, list]:
        return {
            "weights": self.weights.detach().cpu().tolist(),
            "biases": self.biases.detach().cpu().tolist(),
        }

    def to_tensors(self) -> dict[str, torch.Tensor]:
        return {
            "weights": self.weights.detach().cpu().clone(),
            "biases": self.biases.detach().cpu().clone(),
        }


class PolicyValueNetwork:
    """tanh MLP trunk with a tanh value head and a softmax policy head.

    Layers live in ``self.layers`` as immutable :class:`DenseLayer` values. Any
    change of parameters replaces the whole mapping in a single assignment, so a
    concurrent loader never exposes a half-written network to ``forward``.
    """

    def __init__(
        self,
        topology: NetworkTopology = NETWORK_TOPOLOGY,
        temperature: float = POLICY_TEMPERATURE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.topology = topology
        self.temperature = temperature
        self.clock = clock
        self._rebuilt_at: dict[str, float] = {}
        self._shapes = {name: (input_size, output_size) for name, input_size, output_size in topology.layer_shapes}
        self.layers: dict[str, DenseLayer] = self.fresh_layers()

    @property
    def layer_names(self) -> list[str]:
        return [name for name, _, _ in self.topology.layer_shapes]

    def fresh_layers(self) -> dict[str, DenseLayer]:
        return {
            name: DenseLayer.initialize(name, input_size, output_size)
            for name, input_size, output_size in self.topology.layer_shapes
        }

    def reinitialize(self) -> None:
        self.layers = self.fresh_layers()
        self._rebuilt_at.clear()

    def _neutral_output(self) -> tuple[float, list[float]]:
        count = self.topology.action_count
        return 0.0, [1.0 / count] * count

    def _fits(self, layer: DenseLayer | None, name: str) -> bool:
        return (
            layer is not None
            and (layer.input_size, layer.output_size) == self._shapes[name]
            and layer.has_valid_shape()
        )

    def _healed(self, layers: dict[str, DenseLayer], name: str) -> DenseLayer | None:
        layer = layers.get(name)
        if self._fits(layer, name):
            return layer
        now = self.clock()
        last = self._rebuilt_at.get(name)
        if last is not None and now - last < LAYER_REBUILD_COOLDOWN_SECONDS:
            LOGGER.warning("Layer %s has a bad shape but was rebuilt %.2fs ago; emitting zeros", name, now - last)
            return None
        LOGGER.warning("Layer %s has a bad shape; reinitializing", name)
        rebuilt = DenseLayer.initialize(name, *self._shapes[name])
        self.layers = {**self.layers, name: rebuilt}
        self._rebuilt_at[name] = now
        return rebuilt

    def _apply(self, layers: dict[str, DenseLayer], name: str, inputs: torch.Tensor) -> torch.Tensor:
        layer = self._healed(layers, name)
        if layer is None:
            return torch.zeros(self._shapes[name][1], device=device)
        return layer.forward(inputs)

    @torch.no_grad()
    def forward(self, features: Sequence[float]) -> tuple[float, list[float]]:
        """Return ``(value, policy)`` for one feature vector. Never raises on bad shapes."""
        if len(features) != self.topology.input_size:
            LOGGER.warning("Input size mismatch: expected %d, got %d", self.topology.input_size, len(features))
            return self._neutral_output()

        layers = self.layers
        hidden = torch.as_tensor(features, dtype=torch.float32, device=device)
        names = self.layer_names
        for name in names[:-2]:
            hidden = torch.tanh(self._apply(layers, name, hidden))

        value_out = torch.tanh(self._apply(layers, "valueHead", hidden))
        logits = self._apply(layers, "policyHead", hidden)
        if value_out.numel() != 1 or logits.numel() != self.topology.action_count:
            LOGGER.warning("Head output size mismatch; returning neutral output")
            return self._neutral_output()

        policy = torch.softmax(logits / self.temperature, dim=0)
        return float(value_out.item()), [float(p) for p in policy.cpu().tolist()]

    __call__ = forward

    def nudge_biases(self, value_error: float, action: int, learning_rate: float) -> None:
        """Shift the value bias by ``lr * error`` and the taken action's policy bias likewise."""
        layers = self.layers
        value_head = layers.get("valueHead")
        policy_head = layers.get("policyHead")
        if not (self._fits(value_head, "valueHead") and self._fits(policy_head, "policyHead")):
            return
        step = learning_rate * value_error
        policy_biases = policy_head.biases.clone()
        if 0 <= action < policy_biases.numel():
            policy_biases[action] += step
        self.layers = {
            **layers,
            "valueHead": value_head.with_biases(value_head.biases + step),
            "policyHead": policy_head.with_biases(policy_biases),
        }

    def export_layers(self) -> dict[str, dict[str, list]]:
        layers = self.layers
        return {name: layers[name].to_dict() for name in self.layer_names}

    def layer_tensors(self) -> dict[str, dict[str, torch.Tensor]]:
        layers = self.layers
        return {name: layers[name].to_tensors() for name in self.layer_names}

    def import_layers(self, document: Mapping) -> int:
        """Load every layer present in ``document``; returns how many were accepted.

        Missing layers keep their current values. A layer whose data does not fit
        its declared shape is reinitialized.
        """
        updated = dict(self.layers)
        accepted = 0
        for name, input_size, output_size in self.topology.layer_shapes:
            entry = document.get(name)
            if entry is None:
                continue
            try:
                layer = DenseLayer.from_tensors(name, input_size, output_size, entry["weights"], entry["biases"])
            except (KeyError, TypeError, ValueError, RuntimeError) as error:
                LOGGER.warning("Layer %s could not be read (%s); reinitializing", name, error)
                layer = None
            if layer is None or not layer.has_valid_shape():
                if layer is not None:
                    LOGGER.warning("Layer %s failed shape validation; reinitializing", name)
                updated[name] = DenseLayer.initialize(name, input_size, output_size)
                continue
            updated[name] = layer
            accepted += 1
        self.layers = updated
        return accepted
