from __future__ import annotations


class LotteryError(RuntimeError):
    """Base class for every rejected lottery operation."""

    message = "Lottery error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class Unauthorized(LotteryError):
    message = "Unauthorized"


class NotInstantiated(LotteryError):
    message = "Contract state not found; run instantiate first"


class CannotMigrate(LotteryError):
    def __init__(self, previous_contract: str) -> None:
        self.previous_contract = previous_contract
        super().__init__(
            f"Cannot migrate from different contract type: {previous_contract}"
        )


# Stage errors.
class StageNotActive(LotteryError):
    def __init__(self, stage_name: str, reason: str = "is not active") -> None:
        self.stage_name = stage_name
        self.reason = reason
        super().__init__(f"The {stage_name} stage {reason}")


class StageNotEnded(LotteryError):
    def __init__(self, stage_name: str) -> None:
        self.stage_name = stage_name
        super().__init__(f"The {stage_name} stage is not over yet")


class InvalidStage(LotteryError):
    message = "Stage start and duration must use the same unit (height or time)"


class BidStartPassed(LotteryError):
    message = "Bid stage cannot start in the past."


# Configuration errors.
class InvalidConfig(LotteryError):
    message = "Invalid configuration"


class InvalidAddress(LotteryError):
    def __init__(self, address: object) -> None:
        self.address = address
        super().__init__(f"Invalid address: {address!r}")


class InvalidRoot(LotteryError):
    def __init__(self, merkle_root: str) -> None:
        self.merkle_root = merkle_root
        super().__init__(f"Merkle root must be 32 bytes of hex, got: {merkle_root!r}")


class RootsNotRegistered(LotteryError):
    message = "Merkle roots have not been registered"


# Bid errors.
class InvalidBin(LotteryError):
    def __init__(self, bins: int) -> None:
        self.bins = bins
        super().__init__(f"Bin does not exist. Number of bins: {bins}.")


class AlreadyBid(LotteryError):
    message = "Cannot be placed more than one bid per address"


class NoBidFound(LotteryError):
    message = "A bid must be placed before changing or removing it"


class WrongPayment(LotteryError):
    message = "Funds sent must match the ticket price exactly"


# Claim errors.
class AlreadyClaimed(LotteryError):
    message = "Already claimed"


class InvalidProof(LotteryError):
    def __init__(self, merkle_root: str) -> None:
        self.merkle_root = merkle_root
        super().__init__(f"Verification failed for {merkle_root}")


class InsufficientFunds(LotteryError):
    message = "Claim exceeds the funds available in the pool"


# Withdraw and accounting errors.
class NothingToWithdraw(LotteryError):
    message = "Nothing to withdraw"


class ArithmeticOverflow(LotteryError):
    message = "Arithmetic overflow"
