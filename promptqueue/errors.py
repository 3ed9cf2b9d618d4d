from enum import Enum


class ErrorCode(Enum):
    INVALID_OPERATION = "invalid_operation"
    MALFORMED_HISTORY = "malformed_history"
    MALFORMED_PRESET = "malformed_preset"
    PERSISTENCE_FAILURE = "persistence_failure"
    PRESET_NOT_FOUND = "preset_not_found"
    PROMPT_NOT_FOUND = "prompt_not_found"
    SCHEMA_VERSION = "schema_version"


class PromptQueueError(Exception):
    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    @classmethod
    def invalid_operation(cls, detail: str) -> "PromptQueueError":
        return cls(ErrorCode.INVALID_OPERATION, f"Invalid operation: {detail}")

    @classmethod
    def reserved_slot(cls, prompt_id: str) -> "PromptQueueError":
        return cls(
            ErrorCode.INVALID_OPERATION,
            f"Invalid operation: {prompt_id!r} is a reserved slot and cannot be removed",
        )

    @classmethod
    def malformed_history(cls, detail: str) -> "PromptQueueError":
        return cls(ErrorCode.MALFORMED_HISTORY, f"Malformed history: {detail}")

    @classmethod
    def malformed_preset(cls, detail: str) -> "PromptQueueError":
        return cls(ErrorCode.MALFORMED_PRESET, f"Malformed preset: {detail}")

    @classmethod
    def persistence_failure(cls, detail: str) -> "PromptQueueError":
        return cls(ErrorCode.PERSISTENCE_FAILURE, f"Persistence failure: {detail}")

    @classmethod
    def preset_not_found(cls, preset_id: str) -> "PromptQueueError":
        return cls(ErrorCode.PRESET_NOT_FOUND, f"Preset not found: {preset_id}")

    @classmethod
    def prompt_not_found(cls, prompt_id: str) -> "PromptQueueError":
        return cls(ErrorCode.PROMPT_NOT_FOUND, f"Prompt not found: {prompt_id}")

    @classmethod
    def schema_version(cls, expected: int, got: int) -> "PromptQueueError":
        return cls(
            ErrorCode.SCHEMA_VERSION,
            f"Schema version mismatch: expected {expected}, got {got}",
        )
