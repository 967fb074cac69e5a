"""
Docker API Exceptions
"""


class DockerException(Exception):
    """Base Docker exception"""
    pass


class DockerConfigError(DockerException):
    """Invalid client configuration (host URL, API version, TLS files)"""
    pass


class DockerConnectionError(DockerException):
    """Daemon could not be reached"""
    pass


class InvalidArgument(DockerException, ValueError):
    """Invalid value passed to a command builder"""
    pass


class APIError(DockerException):
    """Docker API error"""
    
    def __init__(self, message, response=None, status_code=None, explanation=None):
        super().__init__(message)
        self.response = response
        self.status_code = status_code
        self.explanation = explanation
    
    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500
    
    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500


class NotFound(APIError):
    """Resource does not exist on the daemon"""
    pass


class ImageNotFound(NotFound):
    """Image not found"""
    pass


class ContainerNotFound(NotFound):
    """Container not found"""
    pass


class PullError(APIError):
    """Image pull reported an error in its progress stream"""
    pass
