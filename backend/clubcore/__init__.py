"""
clubcore - 与业务无关的基础组件
状态机引擎、调度后端接口、通知渠道接口
"""
