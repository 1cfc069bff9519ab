# -*- coding: utf-8 -*-
"""
统一的 LLM 工厂：聊天助手使用 Google Gemini（通过 LangChain ChatGoogleGenerativeAI）。
需要设置环境变量 GOOGLE_API_KEY。
"""
import os

from langchain_google_genai import ChatGoogleGenerativeAI, HarmBlockThreshold, HarmCategory

DEFAULT_MODEL = "gemini-2.0-flash"

# 四类安全阈值统一为 BLOCK_MEDIUM_AND_ABOVE
SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
}


def get_llm(
    model: str | None = None,
    temperature: float = 0.7,
    max_output_tokens: int = 1024,
):
    """获取 Gemini LLM 实例。重试由聊天管线负责，客户端自身只发一次请求。"""
    model = model or os.environ.get("GEMINI_MODEL", DEFAULT_MODEL)
    api_key = os.environ.get("GOOGLE_API_KEY", "")
    if not api_key:
        raise RuntimeError(
            "请设置环境变量 GOOGLE_API_KEY。\n"
            "获取方式：https://aistudio.google.com/app/apikey"
        )
    return ChatGoogleGenerativeAI(
        model=model,
        google_api_key=api_key,
        temperature=temperature,
        top_k=40,
        top_p=0.95,
        max_output_tokens=max_output_tokens,
        safety_settings=SAFETY_SETTINGS,
        max_retries=1,
    )
