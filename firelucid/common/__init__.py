"""
Firelucid 公共模块

异常、配置选项、时间戳和通用工具函数
"""
