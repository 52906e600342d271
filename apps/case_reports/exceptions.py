"""
Domain errors raised by the case report and delete request services.

Each carries the user-facing message shown by the client; API views
translate them to HTTP responses.
"""


class CaseReportError(Exception):
    """Base class for case report domain errors."""

    default_message = '處理失敗'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicateSubmission(CaseReportError):
    """A submission for the same MRN and admission date already exists."""

    default_message = '此病歷號與住院日期已存在記錄'

    def __init__(self, existing_id, message=None):
        self.existing_id = existing_id
        super().__init__(message)


class DeleteRequestConflict(CaseReportError):
    default_message = '此筆資料已有待審核的刪除申請'


class DeleteRequestAlreadyResolved(CaseReportError):
    default_message = '此申請已處理'


class ImportFormatError(CaseReportError):
    default_message = 'CSV 檔案至少需要標題列和一筆資料'


class NothingToExport(CaseReportError):
    """The export selection is empty."""

    default_message = '沒有資料可匯出'
