"""Policy/value network, replay buffer, training loop and weight persistence."""
