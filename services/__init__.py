"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- ScoreService：Event 平均分數計算
- ScheduleService：活動時間區間計算
"""
