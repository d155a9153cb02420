"""
会话控制器模块 - 推送连接的状态机、心跳、重试与拆除。

连接流程（connect）：
1. DISCONNECTED → CONNECTING，开启新纪元
2. 打开传输；临时失败按固定间隔重试，连续失败 max_retries 次后放弃
3. 通过 GET /api/users/me 确认自身身份；未授权或不是机器人用户 → AuthError
4. 进入 CONNECTED，立即发送一次心跳，之后按固定间隔发送
5. 发出 "ready"
整个过程受 connect_timeout_s 限制，超时则强制关闭传输并抛出 ConnectionError。

断开处理（传输层 closed(reason)）：
- "io server disconnect"：服务端主动踢下线，致命，不自动重连
- 其他原因：进入 RECONNECTING，按固定间隔串行重试，成功发出 "reconnect"，
  耗尽后发出终止性的 ConnectionError 并回到 DISCONNECTED

【Java 开发者类比】
- 心跳任务相当于 ScheduledExecutorService.scheduleAtFixedRate
- 纪元检查类似于乐观锁的版本号比较
"""

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger

from beniocord.bus import events as ev
from beniocord.bus.emitter import EventBus
from beniocord.cache.records import CachedUser
from beniocord.cache.store import CacheStore
from beniocord.config.schema import ConnectionConfig
from beniocord.errors import AuthError, ConnectionError, RequestFailure
from beniocord.rest.base import RequestGateway
from beniocord.session.commands import CommandTracker
from beniocord.session.state import Session, SessionState
from beniocord.transport.base import CLIENT_DISCONNECT, SERVER_DISCONNECT, Transport, TransportError

# 心跳复用 status:update：定期向服务端重申当前在线状态
HEARTBEAT_EVENT = "status:update"

EventHandler = Callable[[str, Any], Awaitable[None]]


class SessionController:
    """
    推送连接的监督者。

    属性:
        session: 本客户端唯一的会话对象
        transport: 推送传输
        gateway: 请求网关（身份确认、令牌校验）
        bus: 事件总线
        commands: 进行中命令的登记表（拆除时统一拒绝）
        store: 缓存（身份确认结果写入用户缓存）
        config: 连接参数
        _on_event: 入站事件的下游处理器（通常是 EventIngestion.handle）
        _retry_task: 进行中的重连任务（同一时间最多一个）
    """

    def __init__(
        self,
        session: Session,
        transport: Transport,
        gateway: RequestGateway,
        bus: EventBus,
        commands: CommandTracker,
        store: CacheStore,
        config: ConnectionConfig,
        token: str,
        on_event: EventHandler | None = None,
    ):
        self.session = session
        self.transport = transport
        self.gateway = gateway
        self.bus = bus
        self.commands = commands
        self.store = store
        self.config = config
        self.token = token
        self._on_event = on_event
        self._retry_task: asyncio.Task | None = None
        self.transport.set_handlers(on_closed=self._on_closed, on_event=self._dispatch)

    # ---- 连接 -------------------------------------------------------------------

    async def login(self) -> CachedUser:
        """先用 GET /api/auth/verify 校验令牌，再建立连接。"""
        try:
            await self.gateway.request("GET", "/api/auth/verify")
        except RequestFailure as e:
            if e.is_auth_failure:
                raise AuthError("Invalid token was provided") from e
            raise ConnectionError(f"Token verification failed: {e}") from e
        return await self.connect()

    async def connect(self) -> CachedUser:
        """
        建立推送连接并确认身份。

        返回:
            已确认的机器人用户

        异常:
            AuthError: 令牌无效、权限不足或不属于机器人用户
            ConnectionError: 连接超时、重试耗尽或已有连接尝试在进行中
        """
        if self.session.state is SessionState.CONNECTED and self.session.identity:
            return self.session.identity
        if self.session.state is not SessionState.DISCONNECTED:
            raise ConnectionError(f"Cannot connect while {self.session.state.value}")

        epoch = self.session.begin()
        logger.info(f"Connecting to {self.config.api_url}")
        try:
            identity = await asyncio.wait_for(self._establish(epoch), self.config.connect_timeout_s)
        except asyncio.TimeoutError:
            error = ConnectionError(
                f"Connection timeout - failed to connect within {self.config.connect_timeout_s}s"
            )
            await self._fail(epoch, error)
            raise error from None
        except (AuthError, ConnectionError) as e:
            await self._fail(epoch, e)
            raise
        except asyncio.CancelledError:
            await self._fail(epoch, None)
            raise
        except Exception as e:
            error = ConnectionError(f"Connect failed unexpectedly: {e!r}")
            await self._fail(epoch, error)
            raise error from e

        if not self.session.is_current(epoch):
            await self.transport.close()
            raise ConnectionError("Connection attempt aborted by disconnect()")
        await self._enter_connected(identity)
        await self.bus.emit(ev.READY)
        return identity

    async def _establish(self, epoch: int) -> CachedUser:
        """打开传输并确认身份，临时失败按固定间隔重试。"""
        while True:
            if not self.session.is_current(epoch):
                raise ConnectionError("Connection attempt aborted by disconnect()")
            try:
                return await self._attempt()
            except (TransportError, RequestFailure) as e:
                self.session.retry_count += 1
                attempts = self.session.retry_count
                logger.warning(f"Connect attempt {attempts}/{self.config.max_retries} failed: {e}")
                await self.transport.close()
                if attempts >= self.config.max_retries:
                    raise ConnectionError(f"Failed to connect after {attempts} attempts: {e}") from e
            await asyncio.sleep(self.config.retry_delay_s)

    async def _attempt(self) -> CachedUser:
        """
        一次完整的连接尝试：打开传输 + 确认身份。

        异常:
            AuthError: 致命的认证失败
            TransportError / RequestFailure: 可重试的临时失败
        """
        try:
            await self.transport.open(self.config.api_url, self.token)
        except TransportError as e:
            if e.unauthorized:
                raise AuthError(f"Invalid token or insufficient permissions: {e}") from e
            raise
        return await self._confirm_identity()

    async def _confirm_identity(self) -> CachedUser:
        try:
            data = await self.gateway.request("GET", "/api/users/me")
        except RequestFailure as e:
            if e.is_auth_failure:
                raise AuthError("Invalid token was provided") from e
            raise
        if not isinstance(data, dict):
            raise AuthError("Identity lookup returned no user")
        user = self.store.upsert_user(data)
        if not user.is_bot:
            raise AuthError("The provided token does not belong to a bot user")
        return user

    async def _enter_connected(self, identity: CachedUser) -> None:
        self.session.identity = identity
        self.session.retry_count = 0
        self.session.transition(SessionState.CONNECTED)
        self._start_heartbeat()
        logger.info(f"Connected as {identity.username or identity.id}")

    async def _fail(self, epoch: int, error: Exception | None) -> None:
        """连接失败：强制关闭传输、回到 DISCONNECTED 并报告错误。"""
        if self.session.is_current(epoch):
            await self.transport.close()
            self.commands.reject_all("Connection failed")
            self.session.teardown()
        if error is not None:
            logger.error(f"Connect failed: {error}")
            await self.bus.emit(ev.ERROR, error)

    # ---- 心跳 -------------------------------------------------------------------

    def _start_heartbeat(self) -> None:
        self._stop_heartbeat()
        self.session.heartbeat_task = asyncio.create_task(self._heartbeat_loop(self.session.epoch))

    def _stop_heartbeat(self) -> None:
        task = self.session.heartbeat_task
        self.session.heartbeat_task = None
        if task and task is not asyncio.current_task():
            task.cancel()

    async def _heartbeat_loop(self, epoch: int) -> None:
        """心跳循环：立即发送一次，之后每 heartbeat_interval_s 秒发送一次。"""
        while self.session.connected and self.session.epoch == epoch:
            try:
                await self.transport.send(HEARTBEAT_EVENT, {"status": self.session.status})
            except Exception as e:
                logger.warning(f"Heartbeat failed: {e!r}")
            await asyncio.sleep(self.config.heartbeat_interval_s)

    # ---- 断开与重连 ---------------------------------------------------------------

    async def _dispatch(self, event: str, payload: Any) -> None:
        if self.session.state is SessionState.DISCONNECTED:
            logger.debug(f"Dropping {event} received while disconnected")
            return
        if self._on_event:
            await self._on_event(event, payload)

    async def _on_closed(self, reason: str) -> None:
        """传输在打开之后断开。只处理 CONNECTED 状态下的断开。"""
        if self.session.state is not SessionState.CONNECTED:
            logger.debug(f"Ignoring transport close ({reason}) while {self.session.state.value}")
            return

        self._stop_heartbeat()
        await self.bus.emit(ev.DISCONNECT, reason)

        if reason == SERVER_DISCONNECT:
            await self._terminate(ConnectionError("Disconnected by server - token may be invalid"))
            return

        logger.warning(f"Connection lost ({reason}), reconnecting")
        self.session.transition(SessionState.RECONNECTING)
        self.session.retry_count = 0
        self._retry_task = asyncio.create_task(self._reconnect_loop(self.session.epoch))

    async def _reconnect_loop(self, epoch: int) -> None:
        """串行重连：每次尝试之前等待固定间隔，最多 max_retries 次。"""
        while self.session.is_current(epoch) and self.session.state is SessionState.RECONNECTING:
            await asyncio.sleep(self.config.retry_delay_s)
            if not self.session.is_current(epoch):
                return

            self.session.retry_count += 1
            attempt = self.session.retry_count
            try:
                identity = await self._attempt()
            except AuthError as e:
                await self._terminate(e)
                return
            except (TransportError, RequestFailure) as e:
                logger.warning(f"Reconnect attempt {attempt}/{self.config.max_retries} failed: {e}")
                await self.transport.close()
                if attempt >= self.config.max_retries:
                    await self._terminate(
                        ConnectionError(f"Failed to reconnect after {attempt} attempts: {e}")
                    )
                    return
                continue
            except Exception as e:
                await self._terminate(ConnectionError(f"Reconnect failed unexpectedly: {e!r}"))
                return

            if not self.session.is_current(epoch):
                await self.transport.close()
                return
            self._retry_task = None
            await self._enter_connected(identity)
            await self.bus.emit(ev.RECONNECT, attempt)
            return

    async def _terminate(self, error: Exception) -> None:
        """致命断开：拆除会话并发出 "error"。"""
        logger.error(f"Session terminated: {error}")
        self._cancel_retry()
        self._stop_heartbeat()
        await self.transport.close()
        self.commands.reject_all(str(error))
        self.session.teardown()
        await self.bus.emit(ev.ERROR, error)

    def _cancel_retry(self) -> None:
        task, self._retry_task = self._retry_task, None
        if task and task is not asyncio.current_task():
            task.cancel()

    async def disconnect(self) -> None:
        """
        断开连接。任何状态下调用都是安全的。

        取消心跳和进行中的重连、尽力通知服务端下线、关闭传输、
        拒绝所有进行中的命令，并回到 DISCONNECTED。
        """
        was_active = self.session.state is not SessionState.DISCONNECTED
        self._cancel_retry()
        self._stop_heartbeat()

        if self.transport.connected:
            try:
                await self.transport.send(HEARTBEAT_EVENT, {"status": "offline"})
            except Exception as e:
                logger.debug(f"Could not announce offline status: {e!r}")
        await self.transport.close()
        self.commands.reject_all("Session disconnected")
        self.session.teardown()

        if was_active:
            logger.info("Disconnected")
            await self.bus.emit(ev.DISCONNECT, CLIENT_DISCONNECT)

    def is_ready(self) -> bool:
        return self.session.connected and self.transport.connected
