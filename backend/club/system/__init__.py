"""系统集成：调度后端、通知渠道"""
