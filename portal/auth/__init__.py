"""Session, route-gate and one-time-passcode building blocks."""
