"""Central configuration for Dodger AI."""

from __future__ import annotations

from dataclasses import dataclass
import math
import os
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class RuntimeFlags:
    use_gpu: bool


@dataclass(frozen=True)
class NetworkTopology:
    input_size: int
    hidden_sizes: tuple[int, ...]
    action_count: int

    @property
    def layer_shapes(self) -> list[tuple[str, int, int]]:
        """(name, input_size, output_size) for every layer in forward order."""
        names = ["inputLayer"] + [f"hiddenLayer{index}" for index in range(1, len(self.hidden_sizes))]
        sizes = [self.input_size, *self.hidden_sizes]
        shapes = [(name, sizes[i], sizes[i + 1]) for i, name in enumerate(names)]
        final = self.hidden_sizes[-1]
        shapes.append(("valueHead", final, 1))
        shapes.append(("policyHead", final, self.action_count))
        return shapes


@dataclass(frozen=True)
class SpeedLaw:
    name: str
    max_speed: float
    allow_rest: bool = True
    idle_speed: float = 1.0


FLAGS = RuntimeFlags(
    use_gpu=_env_flag("DODGER_USE_GPU", False),
)
USE_GPU = FLAGS.use_gpu

# Field defaults (used by the headless arena)
FIELD_WIDTH = 1200
FIELD_HEIGHT = 675
PLAYER_RADIUS = 12
PLAYER_SPEED = 300
MAX_LIVES = 3
HIT_IFRAMES_SECONDS = 1.2
ARENA_FPS = 60

# Input/output spaces
FEATURE_SIZE = 200
MAX_TRACKED_HAZARDS = 20
HAZARD_FEATURES = 6
MAX_TRACKED_PICKUPS = 5
PICKUP_FEATURES = 4
BASE_BLOCK_SIZE = 8
PREDICTIVE_BLOCK_SIZE = 12
CENTER_BLOCK_SIZE = 10
GLOBAL_THREAT_BLOCK_SIZE = 15
SAFETY_BLOCK_SIZE = 15
HAZARD_BLOCK_OFFSET = BASE_BLOCK_SIZE + PREDICTIVE_BLOCK_SIZE + CENTER_BLOCK_SIZE

ACTION_NAMES = [
    "hold",
    "left",
    "right",
    "up",
    "down",
    "up_left",
    "up_right",
    "down_left",
    "down_right",
]
NUM_ACTIONS = len(ACTION_NAMES)
ACTION_HOLD = 0
ACTION_LEFT = 1

# Integer moves handed to the simulation, and unit directions used for scoring.
ACTION_MOVES: tuple[tuple[int, int], ...] = (
    (0, 0),
    (-1, 0),
    (1, 0),
    (0, -1),
    (0, 1),
    (-1, -1),
    (1, -1),
    (-1, 1),
    (1, 1),
)
DIAGONAL = 0.707
ACTION_DIRECTIONS: tuple[tuple[float, float], ...] = (
    (0.0, 0.0),
    (-1.0, 0.0),
    (1.0, 0.0),
    (0.0, -1.0),
    (0.0, 1.0),
    (-DIAGONAL, -DIAGONAL),
    (DIAGONAL, -DIAGONAL),
    (-DIAGONAL, DIAGONAL),
    (DIAGONAL, DIAGONAL),
)

# Kinematic prediction
DEFAULT_TURN_RATE = math.pi
TRACKER_MIN_TURN_ANGLE = 1e-4
FEATURE_PREDICTION_SECONDS = 1.0
PREDICTION_HORIZONS = (0.5, 1.0, 2.0, 3.0)

# Threat classification
IMMEDIATE_DANGER_MARGIN = 30
DANGER_FALLOFF_MARGIN = 80
PREDICTED_DANGER_MARGIN = 50
PREDICTED_DANGER_SECONDS = 0.5
HEADING_THREAT_RANGE = 200
IMMEDIATE_DANGER_THRESHOLD = 0.8
HIGH_RISK_THRESHOLD = 0.5
PREDICTED_DANGER_THRESHOLD = 0.6
ESCAPE_LOOKAHEAD = 100
ESCAPE_BOUNDARY_MARGIN = 50
ESCAPE_HAZARD_MARGIN = 60
EMERGENCY_LOOKAHEAD = 120
HIGH_RISK_PREDICTION_SECONDS = 0.7
HIGH_RISK_BOUNDARY_MARGIN = 80
HIGH_RISK_HAZARD_MARGIN = 70

# Direction safety simulation
SAFETY_SIMULATION_STEPS = 8
SAFETY_STEP_DISTANCE = 30
SAFETY_STEP_SECONDS = 0.5
SAFETY_BOUNDARY_MARGIN = 60
SAFETY_EARLY_STOP = 0.1
STANDARD_HAZARD_RADIUS = 15
FAST_HAZARD_SPEED = 200.0
VERY_FAST_HAZARD_SPEED = 250.0

# Boundary and center pressure
COMFORT_ZONE = 200
SAFE_EDGE_MARGIN = 150
CENTER_RADIUS_RATIO = 0.3
EDGE_CENTER_ATTRACTION = 0.8
CENTER_FORCE_RATIO = 0.6
URGENT_BOUNDARY = 60
WARNING_BOUNDARY = 120

# Pickups
HEALTH_PICKUP_TYPES = frozenset({"heart", "health"})
PICKUP_PATH_STEPS = 15
LOW_HEALTH = 0.6
CRITICAL_HEALTH = 0.3
PICKUP_REACH_DISTANCE = 25

# Anti-oscillation memory
POSITION_MEMORY_SIZE = 10
POSITION_MEMORY_SECONDS = 3.0
BORDER_MEMORY_SECONDS = 5.0
OSCILLATION_STEP_THRESHOLD = 30
OSCILLATION_EDGE_MARGIN = 150

# Speed model
SPEED_LAWS = {
    "balanced": SpeedLaw(name="balanced", max_speed=5.0),
    "fast": SpeedLaw(name="fast", max_speed=6.0),
}
DEFAULT_SPEED_LAW = "balanced"
MIN_MOVING_SPEED = 1.0
UNSAFE_HOLD_SPEED = 1.8
SAFE_STAY_HAZARD_DISTANCE = 180
SAFE_STAY_BOUNDARY_DISTANCE = 120
HEURISTIC_STRENGTH = 0.5

# Network
NETWORK_TOPOLOGY = NetworkTopology(
    input_size=FEATURE_SIZE,
    hidden_sizes=(1024, 1536, 1024, 768),
    action_count=NUM_ACTIONS,
)
POLICY_TEMPERATURE = 1.0
BIAS_INIT_RANGE = 0.1
LAYER_REBUILD_COOLDOWN_SECONDS = 2.0

# Training
REPLAY_BUFFER_SIZE = 50_000
HIGH_PRIORITY_FRACTION = 0.8
TERMINAL_PRIORITY_BONUS = 2.0
PROXIMITY_WEIGHT_FLOOR = 0.1
MIN_TRAINING_EXPERIENCES = 100
BATCH_SIZE = 64
GAMMA = 0.99
LEARNING_RATE = 0.001
EXPLORATION_START = 0.1
EXPLORATION_RESET = 0.3
EXPLORATION_MIN = 0.01
EXPLORATION_DECAY = 0.995
TRAIN_EVERY_EPISODES = 10
SNAPSHOT_EVERY_EPISODES = 50

# Persistence
WEIGHTS_VERSION = "2.0"
MAX_SNAPSHOTS = 10
STORE_DIR = Path(os.getenv("DODGER_STORE_DIR", str(PROJECT_ROOT / "model" / "store")))
STORE_INDEX_KEY = "dodger_ai_weights_v2"
PRESET_WEIGHTS_PATH = Path(os.getenv("DODGER_PRESET_WEIGHTS", str(PROJECT_ROOT / "Dodger_AI_weights.json")))
STORE_SAVE_RETRIES = 5
STORE_SAVE_RETRY_DELAY_SECONDS = 0.2

# Headless training
TOTAL_TRAINING_EPISODES = 500
MAX_EPISODE_SECONDS = 120.0
REWARD_ROLLING_WINDOW = 50
REWARD_SURVIVAL_PER_SECOND = 1.0
PENALTY_HIT = -5.0
REWARD_PICKUP = 2.0
PENALTY_DEATH = -10.0

# Headless arena spawner
HAZARD_BASE_SPEED = 110.0
HAZARD_SPEED_PER_DIFFICULTY = 95.0
DIFFICULTY_SECONDS = 12.0
HAZARD_LIFE_SECONDS = 14.0
HAZARD_DESPAWN_MARGIN = 64
HAZARD_SPAWN_CHECK_SECONDS = 0.5
MAX_ARENA_HAZARDS = 100
HAZARD_SPAWN_SPREAD = math.pi / 3
PICKUP_RADIUS = 10
PICKUP_LIFE_SECONDS = 6.0
PICKUP_COOLDOWN_BASE = 3.0
PICKUP_COOLDOWN_RANDOM = 2.2
PICKUP_SPAWN_CHANCE = 0.55
PICKUP_SPAWN_MARGIN = 60
