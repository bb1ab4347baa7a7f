"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理所有 phase 轉換
- Manager：把狀態機的決定寫進 Room Store
- Store：Room Store 介面與 SQLAlchemy 實作
- Round View：訂閱 store 推送，維護每個裝置的即時快照
"""
