"""
Exceptions raised by the habit engine.

Validation and lookup failures are raised where the input is checked;
storage failures wrap the underlying SQLAlchemy error.
"""
import uuid


class HabitKitError(Exception):
    """Base exception for the habit engine"""
    pass


class ValidationError(HabitKitError):
    """Raised when habit data fails validation"""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Validation error for {field}: {message}")


class NotFoundError(HabitKitError):
    """Raised when a habit or completion does not exist"""
    def __init__(self, entity: str, entity_id: uuid.UUID | str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with ID {entity_id} not found")


class StorageError(HabitKitError):
    """Raised when a database operation fails"""
    def __init__(self, operation: str, details: str):
        self.operation = operation
        self.details = details
        super().__init__(f"Database {operation} failed: {details}")
