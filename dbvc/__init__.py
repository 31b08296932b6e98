"""テーブル単位のデータベースバージョン管理"""

__version__ = "0.1.0"
