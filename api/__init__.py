"""
API 層（FastAPI routers）

只負責把 core 的異常映射成 HTTP 狀態碼：
- NotFound -> 404
- Conflict / CapacityExceeded -> 409
- ValidationError -> 400
- TransientStorageError -> 503
"""
