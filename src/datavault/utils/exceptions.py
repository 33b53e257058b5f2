"""
Custom exception classes for the DataVault engine.
Each carries an HTTP status code so the API layer can translate it directly:
user errors map to 4xx, service and synthesis failures to 5xx.
"""

class AppException(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

class ParseError(AppException):
    """Raised when an uploaded file cannot be turned into a dataset."""
    def __init__(self, message: str = "Failed to parse the uploaded file."):
        super().__init__(message, status_code=400)

class StatisticsUnavailable(AppException):
    """Raised when a column has no numeric values to summarise."""
    def __init__(self, column: str):
        self.column = column
        super().__init__(f"Column '{column}' has no numeric values.", status_code=422)

class InsufficientDataError(AppException):
    """Raised when a model needs more valid points than the data provides."""
    def __init__(self, message: str = "Insufficient data for analysis."):
        super().__init__(message, status_code=422)

class ServiceUnavailableError(AppException):
    """Raised when the chat assistant call fails or times out."""
    def __init__(self, message: str = "The assistant service is unavailable."):
        super().__init__(message, status_code=503)

class ReportError(AppException):
    """Raised when report content synthesis fails."""
    def __init__(self, message: str = "Failed to generate report."):
        super().__init__(message, status_code=500)

class DatasetNotFoundError(AppException):
    """Raised when a dataset id is not in the registry."""
    def __init__(self, dataset_id: str):
        super().__init__(f"Dataset '{dataset_id}' not found.", status_code=404)

class NoActiveDatasetError(AppException):
    """Raised when an operation needs an active dataset and none is selected."""
    def __init__(self, message: str = "No dataset loaded. Please upload a CSV or JSON file first."):
        super().__init__(message, status_code=400)
