# check_llm.py
"""Verify the OpenAI key before a run so the conversation can use the vision model."""

import sys

import settings
from llm_client import check_connection


def mask_key(key: str) -> str:
    if len(key) <= 11:
        return "***"
    return f"{key[:7]}...{key[-4:]}"


def main() -> int:
    print("🧪 Testing OpenAI API Integration...\n")
    key = settings.openai_api_key()
    if key is None:
        print("❌ OPENAI_API_KEY not found or not set properly")
        print("💡 Add OPENAI_API_KEY to your .env file (see .env.example)")
        print("⚠️  Runs will fall back to simple conversation logic without LLM analysis")
        return 1

    print("✅ API key found")
    print(f"   Key format: {mask_key(key)}\n")
    print("🔗 Testing API connection...")
    if not check_connection():
        print("💡 Check that the key is valid, has access to the model, and has credits left.")
        print("⚠️  Runs will fall back to simple conversation logic without LLM analysis")
        return 1

    print(f"🎉 OpenAI integration is ready! Conversations will use {settings.OPENAI_MODEL}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
