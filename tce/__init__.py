# tce — テストケースエクスポーター
# プラットフォーム非依存のテストケース IR を各自動化フレームワークの成果物へ変換する

__version__ = "0.1.0"
