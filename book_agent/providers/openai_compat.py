"""OpenAI 兼容 chat/completions 协议的通用客户端。

DashScope（兼容模式）与 OpenAI 使用同一套接口：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>
- 流式: SSE，每行 "data: {json}"，以 "data: [DONE]" 结束

本实现只依赖公共字段：model/messages/temperature/stream。
"""

import json
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from book_agent.domain.exceptions import ApiError, NetworkError, RateLimitError
from book_agent.domain.models import BackendOutput, ChatRecord


class OpenAICompatibleClient:
    """绑定单个模型的无状态客户端，可被并发请求共享。"""

    name = "openai-compatible"

    def __init__(
        self,
        model_id: str,
        api_key: str,
        base_url: str,
        http_timeout: float = 60.0,
        temperature: float = 0.7,
        proxy: Optional[str] = None,
    ):
        self.model_id = model_id
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._http_timeout = http_timeout
        self._temperature = temperature
        self._proxy = proxy

    # ---- 流式 ----

    async def stream(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        history: Optional[Sequence[ChatRecord]] = None,
    ) -> AsyncIterator[BackendOutput]:
        payload = self._build_payload(prompt, system_prompt, stream=True, history=history)
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    f"{self._base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                ) as resp:
                    if resp.status_code >= 400:
                        await resp.aread()
                        self._raise_for_status(resp)
                    content_type = resp.headers.get("content-type", "")
                    if "application/json" in content_type:
                        # 上游忽略了 stream=true，直接返回了完整结果
                        await resp.aread()
                        text = self._extract_message(resp.json())
                        if text:
                            yield BackendOutput.of_final(text)
                        return
                    async for line in resp.aiter_lines():
                        output = self._parse_stream_line(line)
                        if output is not None:
                            yield output
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__, provider=self.name) from e

    # ---- 非流式 ----

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        payload = self._build_payload(prompt, system_prompt, stream=False)
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self._base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__, provider=self.name) from e
        self._raise_for_status(resp)
        return self._extract_message(resp.json())

    # ---- 辅助方法 ----

    def _client(self) -> httpx.AsyncClient:
        kwargs: Dict[str, Any] = {"timeout": self._http_timeout, "trust_env": False}
        if self._proxy:
            kwargs["proxy"] = self._proxy
        return httpx.AsyncClient(**kwargs)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(
        self,
        prompt: str,
        system_prompt: Optional[str],
        stream: bool,
        history: Optional[Sequence[ChatRecord]] = None,
    ) -> dict:
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        for record in history or ():
            messages.append({"role": record.role, "content": record.content})
        messages.append({"role": "user", "content": prompt})
        return {
            "model": self.model_id,
            "messages": messages,
            "temperature": self._temperature,
            "stream": stream,
        }

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise RateLimitError(
                code="RATE_LIMIT",
                message=f"{self.name} rate limit: {resp.text}",
                http_status=429,
                provider=self.name,
            )
        if resp.status_code >= 400:
            raise ApiError(
                code="API_ERROR",
                message=f"HTTP {resp.status_code}: {resp.text}",
                http_status=resp.status_code,
                provider=self.name,
            )

    @staticmethod
    def _parse_stream_line(line: str) -> Optional[BackendOutput]:
        """解析一行 SSE，返回 None 表示该行没有可用文本。"""

        if not line:
            return None
        data_str = line
        if data_str.startswith("data:"):
            data_str = data_str[5:].strip()
        else:
            data_str = data_str.strip()
        if not data_str or data_str == "[DONE]":
            return None
        try:
            chunk = json.loads(data_str)
        except json.JSONDecodeError:
            return None
        if not isinstance(chunk, dict):
            return None
        choices = chunk.get("choices") or []
        if not choices:
            return None
        choice = choices[0]
        delta = choice.get("delta") or {}
        text = delta.get("content")
        if text:
            return BackendOutput.of_delta(text)
        # 部分实现会在最后一帧回显完整 message
        message = choice.get("message") or {}
        full = message.get("content")
        if full:
            return BackendOutput.of_final(full)
        return None

    @staticmethod
    def _extract_message(data: Dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        msg = choices[0].get("message") or {}
        return msg.get("content") or ""
