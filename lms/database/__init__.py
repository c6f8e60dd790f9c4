"""
数据库访问模块
"""

from .mongodb_client import AsyncMongoDBClient

__all__ = ['AsyncMongoDBClient']
