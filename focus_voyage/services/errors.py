"""Common error handling for all services"""

class ServiceError(Exception):
    """Base exception for all service errors"""
    pass

class ValidationError(ServiceError):
    """Raised synchronously for invalid calls (missing identifiers, bad state)"""
    pass

class SessionStateError(ValidationError):
    """Raised when a session operation does not fit the current lifecycle state"""
    pass

class EventStateError(ValidationError):
    """Raised when a distraction event is resolved twice"""
    pass

class PersistenceError(ServiceError):
    """Base exception for store-related errors"""
    pass

class DatabaseError(PersistenceError):
    """Base exception for database-related errors"""
    pass

class ClassifierError(ServiceError):
    """Base exception for classifier-related errors"""
    pass

class ImageError(ServiceError):
    """Base exception for image-related errors"""
    pass

class DetectorConflictError(ServiceError):
    """Raised when a second detector of the same signal type is registered"""
    pass

class ClockAnomaly(RuntimeWarning):
    """Warning category for negative durations produced by the time source"""
    pass
