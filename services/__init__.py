"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- NamingService：房間代碼、玩家名稱
- DeckService：prompt / 答案牌組、選項抽取、分享文字
- IdentityService：裝置 id 與匿名 session
"""
