class CommissionError(Exception):
    """Commission operation that cannot be applied. The message is user-safe."""


class InvalidCommissionTransition(CommissionError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move a commission from {current} to {target}.")
