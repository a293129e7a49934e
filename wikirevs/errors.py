class WikiPageException(Exception):
    """Base class for all errors raised while reading or modifying wiki pages"""

    def __init__(self, message: str, title=None):
        """Initializes the exception instance

        Args:
            message: exception message
            title: title of the page the error relates to (if any)
        """
        super().__init__(message)
        self.title = title


class InvalidTitle(WikiPageException):
    """The text can't be turned into a valid page title"""

    def __init__(self, message: str, text: str):
        """Initializes the exception instance"""
        super().__init__(message)
        self.text = text


class InvalidModel(WikiPageException):
    """Unknown content model name"""

    def __init__(self, message: str, model: str):
        """Initializes the exception instance"""
        super().__init__(message)
        self.model = model


class ModelMismatch(WikiPageException):
    """The new content model differs from the model of the existing page"""

    def __init__(self, message: str, title, page_model: str, content_model: str):
        """Initializes the exception instance"""
        super().__init__(message, title)
        self.page_model = page_model
        self.content_model = content_model


class PageExists(WikiPageException):
    """An edit flagged as page creation targets a page that already exists"""


class PageMissing(WikiPageException):
    """An edit flagged as an update targets a page that doesn't exist"""


class AlreadyDeleted(WikiPageException):
    """The page to delete doesn't exist (anymore)"""


class VirtualNamespace(WikiPageException):
    """Pages in virtual namespaces (Special, Media) can't be edited or deleted"""


class StoreUnavailable(WikiPageException):
    """The revision store can't be read from or written to"""


class RendererUnavailable(WikiPageException):
    """Parser output was requested, but no renderer was configured"""


class PermissionDenied(WikiPageException):
    """The user lacks a capability, or presented an invalid edit token"""

    def __init__(self, message: str, title=None, action: str = None):
        """Initializes the exception instance

        Args:
            message: exception message
            title: title of the page
            action: the capability that was checked (None for token failures)
        """
        super().__init__(message, title)
        self.action = action


class RollbackError(WikiPageException):
    """Base class for errors reported by rollback"""


class NotLastAuthor(RollbackError):
    """The latest revision isn't by the user whose edits should be rolled back"""

    def __init__(self, message: str, title, from_user: str, current_author: str):
        """Initializes the exception instance"""
        super().__init__(message, title)
        self.from_user = from_user
        self.current_author = current_author


class OnlyAuthor(RollbackError):
    """Every revision of the page is by the user whose edits should be rolled back"""

    def __init__(self, message: str, title, from_user: str):
        """Initializes the exception instance"""
        super().__init__(message, title)
        self.from_user = from_user


class RollbackPermissionDenied(RollbackError, PermissionDenied):
    """Permission error reported by rollback"""

    def __init__(self, message: str, title=None, action: str = None):
        """Initializes the exception instance"""
        PermissionDenied.__init__(self, message, title, action)
