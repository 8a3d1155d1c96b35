"""
Custom exception handling for the application.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status


def custom_exception_handler(exc, context):
    """
    Custom exception handler that returns responses in a standard format.
    Business exceptions raised out of views are rendered the same way.
    """
    if isinstance(exc, BusinessException):
        return Response(
            {
                'success': False,
                'error': {
                    'code': exc.code,
                    'message': exc.message,
                }
            },
            status=exc.http_status
        )

    response = exception_handler(exc, context)

    if response is not None:
        custom_response = {
            'success': False,
            'error': {
                'code': exc.__class__.__name__,
                'message': str(exc.detail) if hasattr(exc, 'detail') else str(exc),
            }
        }

        if hasattr(exc, 'detail') and isinstance(exc.detail, dict):
            custom_response['error']['details'] = exc.detail

        response.data = custom_response

    return response


class BusinessException(Exception):
    """Base exception for business logic errors."""
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, code='BUSINESS_ERROR'):
        self.message = message
        self.code = code
        super().__init__(message)


class InsufficientStockError(BusinessException):
    """Exception raised when stock is insufficient."""
    def __init__(self, material_name, required, available):
        self.required = required
        self.available = available
        message = f'物料 {material_name} 庫存不足，需要 {required}，可用 {available}'
        super().__init__(message, 'INSUFFICIENT_STOCK')


class WouldUnderflowError(BusinessException):
    """Exception raised when a movement would drive a balance below zero."""
    def __init__(self, material_id, location_id, current, change):
        self.material_id = material_id
        self.location_id = location_id
        self.current = current
        self.change = change
        message = (
            f'物料 {material_id} 於儲位 {location_id} 庫存不足，'
            f'目前 {current}，異動 {change:+d} 將導致負庫存'
        )
        super().__init__(message, 'WOULD_UNDERFLOW')


class NotFoundError(BusinessException):
    """Exception raised when a record does not exist."""
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, message, code='NOT_FOUND'):
        super().__init__(message, code)


class InvalidTransitionError(BusinessException):
    """Exception raised when a state transition is not allowed."""
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, current_status, target_status):
        self.current_status = current_status
        self.target_status = target_status
        message = f'狀態 {current_status} 無法轉換為 {target_status}'
        super().__init__(message, 'INVALID_TRANSITION')


class ConcurrentModificationError(BusinessException):
    """Exception raised when a record was changed by another request."""
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, message='資料已被其他請求修改，請重新讀取後再試'):
        super().__init__(message, 'CONCURRENT_MODIFICATION')


class ReturnInputError(BusinessException):
    """Exception raised for malformed return input."""


class InvalidMovementError(ReturnInputError):
    """Exception raised when a return line cannot be turned into stock movements."""
    def __init__(self, message):
        super().__init__(message, 'INVALID_MOVEMENT')


class ValidationFailedError(BusinessException):
    """Exception raised when one or more return lines fail validation."""
    def __init__(self, results):
        self.results = list(results)
        failed = [result for result in self.results if not result.is_valid]
        message = f'{len(failed)} 筆物料驗證失敗'
        super().__init__(message, 'VALIDATION_FAILED')


class ReturnNotFoundError(NotFoundError):
    """Exception raised when a return request does not exist."""
    def __init__(self, return_id):
        self.return_id = return_id
        super().__init__(f'找不到退貨單 {return_id}', 'RETURN_NOT_FOUND')
