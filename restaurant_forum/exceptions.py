"""
Custom exceptions for better error handling and user feedback
"""


class ForumError(Exception):
    """Base class for errors that end the current request with a message"""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ForumError):
    """Raised on bad input (password mismatch, empty name, ...)"""

    status_code = 400


class AuthenticationError(ForumError):
    """Raised when the request has no signed-in user or credentials are wrong"""

    status_code = 401


class AuthorizationError(ForumError):
    """Raised when acting on another user's resource or without the admin role"""

    status_code = 403


class NotFoundError(ForumError):
    """Raised when a user, restaurant, comment or join row is missing"""

    status_code = 404


class ConflictError(ForumError):
    """Raised on duplicate resources (account, favorite, like, follow)"""

    status_code = 409


class ImageValidationError(ValidationError):
    """Base class for image validation errors"""
    pass


class ImageTooLargeError(ImageValidationError):
    """Raised when uploaded image exceeds size limit"""

    def __init__(self, max_size_mb: int):
        self.max_size_mb = max_size_mb
        super().__init__(
            f"Image file is too large. Maximum size allowed is {max_size_mb}MB.")


class UnsupportedImageFormatError(ImageValidationError):
    """Raised when uploaded file is not a valid image format"""

    def __init__(self):
        super().__init__(
            "The uploaded file is not a valid image. Please upload a JPG, PNG, GIF or WebP image.")


class CorruptedImageError(ImageValidationError):
    """Raised when the uploaded bytes do not decode as an image"""

    def __init__(self):
        super().__init__(
            "The image file appears to be corrupted or damaged. Please try uploading a different image.")
