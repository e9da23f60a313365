from __future__ import annotations
import httpx
from typing import Any, Dict, List, Optional
from .settings import settings

class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		image_model: Optional[str] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.image_model = image_model or settings.gemini_image_model
		self.provider = settings.gemini_provider
		self._base_url_override = base_url
		# Google AI Studio takes the key as a query parameter, Vertex as a header
		self._auth_in_query = self.provider != "vertex"
		self.base_url = self._endpoint(self.model)
		self._client = httpx.AsyncClient(timeout=60)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(settings.openrouter_api_key)
		self._openrouter_api_key = settings.openrouter_api_key
		self._openrouter_model = settings.openrouter_model
		self._openrouter_base_url = settings.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=60)

	def _endpoint(self, model: str) -> str:
		if self._base_url_override:
			return self._base_url_override
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			return (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{model}:generateContent"
			)
		return f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

	async def generate(self, prompt: str, *, thinking_budget: Optional[int] = None) -> str:
		payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
		return await self._post_payload(
			payload,
			thinking_budget=thinking_budget,
			fallback_prompt=prompt,
		)

	async def generate_image(self, prompt: str) -> Optional[str]:
		"""Ask the image model for a picture and return its base64 PNG data, if any."""
		payload: Dict[str, Any] = {
			"contents": [{"role": "user", "parts": [{"text": prompt}]}],
			"generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
		}
		data = await self._post_json(self._endpoint(self.image_model), payload)
		parts: List[Dict[str, Any]] = []
		try:
			parts = data["candidates"][0]["content"]["parts"] or []
		except (KeyError, IndexError, TypeError):
			return None
		for part in parts:
			inline = part.get("inlineData") or part.get("inline_data") or {}
			if inline.get("data"):
				return inline["data"]
		return None

	def _auth(self) -> tuple[Dict[str, Any], Dict[str, str]]:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		return params, headers

	async def _post_json(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
		params, headers = self._auth()
		r = await self._client.post(url, params=params, headers=headers, json=payload)
		r.raise_for_status()
		return r.json()

	async def _post_payload(
		self,
		payload: Dict[str, Any],
		*,
		thinking_budget: Optional[int] = None,
		fallback_prompt: Optional[str],
		allow_fallback: bool = True,
	) -> str:
		if thinking_budget is not None:
			try:
				budget_tokens = int(thinking_budget)
			except (TypeError, ValueError):
				budget_tokens = 0
			payload = {**payload, "thinkingConfig": {"budgetTokens": budget_tokens}}
		last_error: Optional[Exception] = None
		data: Optional[Dict[str, Any]] = None
		try:
			data = await self._post_json(self.base_url, payload)
		except httpx.HTTPStatusError as http_err:
			if thinking_budget is not None and "thinkingConfig" in payload:
				fallback_payload = dict(payload)
				fallback_payload.pop("thinkingConfig", None)
				try:
					data = await self._post_json(self.base_url, fallback_payload)
				except Exception as err:
					last_error = err
			else:
				last_error = http_err
		except httpx.RequestError as net_err:
			last_error = net_err
		except ValueError as decode_err:
			last_error = RuntimeError(f"Unexpected Gemini response: {decode_err}")
		if last_error is None and data is not None:
			try:
				return data["candidates"][0]["content"]["parts"][0]["text"]
			except (KeyError, IndexError, TypeError):
				last_error = RuntimeError(f"Unexpected Gemini response: {data}")
		if not allow_fallback or not self._fallback_enabled:
			raise last_error or RuntimeError("Gemini call failed and no fallback configured")
		if fallback_prompt is None:
			raise last_error or RuntimeError("Gemini call failed and fallback prompt unavailable")
		return await self._fallback_generate(fallback_prompt, last_error)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, prompt: str, primary_error: Optional[Exception]) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise primary_error or RuntimeError("Fallback requested but OpenRouter is not configured")
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": [{"role": "user", "content": prompt}],
		}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			return data["choices"][0]["message"]["content"]
		except Exception as fallback_err:
			if primary_error is not None:
				raise RuntimeError(
					f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
				) from fallback_err
			raise fallback_err
