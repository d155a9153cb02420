"""beniocord 命令行接口。"""
