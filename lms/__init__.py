"""
学习管理系统后端
提供用户认证、角色授权和密码重置服务
"""

__version__ = "1.0.0"
