"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

分類（每一種對應一個明確的原因，API 層可以直接映射）：
- NotFound：參照的資料不存在
- Conflict：唯一性衝突（重複評分、重複報名）
- CapacityExceeded：隊伍人數已滿
- ValidationError：輸入格式錯誤（分數範圍、未知狀態、時間區間）
- TransientStorageError：資料庫暫時不可用或逾時，可重試
"""


class EnsembleException(Exception):
    """所有業務異常的基類"""
    pass


# ============ NotFound ============

class NotFound(EnsembleException):
    """參照的資料不存在"""
    entity = "Record"

    def __init__(self, record_id):
        self.record_id = record_id
        super().__init__(f"{self.entity} {record_id} not found")


class EventNotFound(NotFound):
    entity = "Event"


class TeamNotFound(NotFound):
    entity = "Team"


class EvaluationNotFound(NotFound):
    entity = "Evaluation"


class RegistrationNotFound(NotFound):
    entity = "Registration"


# ============ Conflict ============

class Conflict(EnsembleException):
    """唯一性衝突"""
    pass


class EvaluationAlreadyExists(Conflict):
    """同一個評分者對同一個活動只能評分一次"""
    def __init__(self, event_id, evaluator_id):
        self.event_id = event_id
        self.evaluator_id = evaluator_id
        super().__init__(
            f"Evaluator {evaluator_id} already evaluated event {event_id}"
        )


class RegistrationAlreadyExists(Conflict):
    """同一個使用者對同一個活動只能報名一次"""
    def __init__(self, user_id, event_id):
        self.user_id = user_id
        self.event_id = event_id
        super().__init__(f"User {user_id} is already registered for event {event_id}")


# ============ 隊伍人數 ============

class CapacityExceeded(EnsembleException):
    """隊伍人數已達上限（max_members）"""
    def __init__(self, team_id, max_members):
        self.team_id = team_id
        self.max_members = max_members
        super().__init__(f"Team {team_id} is full ({max_members} members)")


# ============ 輸入驗證 ============

class ValidationError(EnsembleException):
    """輸入資料不合法（在任何寫入之前就會拋出）"""
    pass


class InvalidScore(ValidationError):
    """分數必須在 0-10 之間"""
    def __init__(self, score):
        self.score = score
        super().__init__(f"Score must be between 0 and 10, got {score}")


class InvalidStatus(ValidationError):
    """無法辨識的狀態值"""
    pass


class InvalidTimeWindow(ValidationError):
    """結束時間必須晚於開始時間（同一天）"""
    pass


class InvalidStateTransition(ValidationError):
    """非法的狀態轉換"""
    pass


# ============ 儲存層 ============

class TransientStorageError(EnsembleException):
    """資料庫暫時不可用或逾時（transaction 已 rollback，可重試）"""
    pass
