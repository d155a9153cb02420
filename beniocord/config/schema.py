"""
配置数据模型定义 (config/schema.py)
=================================
本模块使用 Pydantic 定义 beniocord 客户端的完整配置结构。
所有配置项都有默认值，使用者只需覆盖需要修改的部分。
配置在 Client 构造时确定，运行期间不再变化。

整体配置结构（树形）：
Config (根配置)
├── token         - 机器人令牌
├── connection    - 连接参数（API 地址、超时、重试、心跳）
└── cache         - 缓存容量（每频道消息数、回声登记表软上限）

对于 Java 开发者：
- Pydantic 的 BaseModel 类似于 Java 的 POJO/Record，但自带字段验证和默认值
- BaseSettings 类似于 Spring 的 @ConfigurationProperties，额外支持从环境变量读取配置
"""

from pydantic import BaseModel, Field, ConfigDict
from pydantic_settings import BaseSettings


class ConnectionConfig(BaseModel):
    """推送连接与 REST 请求的参数。"""
    api_url: str = "https://beniocord-api.gamerjunior.shop"  # REST 与 Socket.IO 共用的服务地址
    asset_url: str = "https://api.beniocord.site"  # 头像、图标、附件等相对路径的基础地址
    socket_path: str = "/socket.io"  # Socket.IO 路径
    connect_timeout_s: float = Field(default=10.0, gt=0)  # connect() 整体超时（秒）
    request_timeout_s: float = Field(default=5.0, gt=0)  # 单次 REST 请求超时（秒）
    command_timeout_s: float = Field(default=15.0, gt=0)  # 等待命令确认的超时（秒）
    max_retries: int = Field(default=3, ge=1)  # 连续失败多少次后放弃
    retry_delay_s: float = Field(default=1.0, ge=0)  # 两次重试之间的固定间隔（秒）
    heartbeat_interval_s: float = Field(default=30.0, gt=0)  # 心跳间隔（秒）


class CacheConfig(BaseModel):
    """缓存容量配置。"""
    message_capacity: int = Field(default=50, ge=1)  # 每个频道最多缓存的消息数
    echo_capacity: int = Field(default=1000, ge=1)  # 回声登记表软上限


class Config(BaseSettings):
    """
    beniocord 根配置。

    支持 BENIOCORD_ 前缀的环境变量覆盖，嵌套字段用 __ 分隔，
    例如 BENIOCORD_CONNECTION__MAX_RETRIES=5。
    """
    token: str = ""  # 机器人令牌（Bearer）
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    model_config = ConfigDict(
        env_prefix="BENIOCORD_",  # 环境变量前缀
        env_nested_delimiter="__"  # 嵌套配置的分隔符
    )
