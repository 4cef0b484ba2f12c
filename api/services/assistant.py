# SPDX-License-Identifier: Apache-2.0

"""
Generative-text assistant used to draft request messages and answer
donation questions.

Talks to the Gemini `generateContent` REST endpoint. Every failure
degrades to a fixed fallback string; nothing here raises to the caller or
touches repository state.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

import requests
from opentelemetry import trace

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

MISSING_KEY_MESSAGE = "API Key missing. Cannot generate message."
MISSING_KEY_ANSWER = "API Key missing."
MESSAGE_ERROR = "Error generating message."
MESSAGE_FALLBACK = "Urgent help needed! Please donate blood."
ANSWER_EMPTY = "I couldn't generate a response."
ANSWER_FALLBACK = "Sorry, I'm having trouble connecting to the knowledge base right now."

EMERGENCY_PROMPT = """
Act as a medical coordinator for a college blood donation app.
Write a short, urgent, and compelling push notification message (max 140 chars) and a slightly longer description (max 300 chars) for a blood request.

Details:
- Blood Group: {blood_group}
- Hospital: {hospital}
- Urgency: {urgency}
- Units Needed: {units}

Return the response in JSON format with keys: "title" and "description".
"""

QUESTION_PROMPT = """
You are a helpful assistant for "Campus Blood Connect", a student blood donation app.
Answer the user's question about blood donation eligibility, process, or health advice briefly and accurately.
Keep the tone encouraging and informative.

User Question: "{question}"
"""


class AssistantError(Exception):
    """Raised internally when the model call fails or returns nothing usable."""
    pass


@dataclass
class AssistantConfig:
    """Generative assistant configuration."""
    api_key: str = ""
    model: str = "gemini-2.5-flash"
    timeout: float = 15.0


class AssistantService:
    """Client for the external text-generation model."""
    
    def __init__(self, config: AssistantConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.http = session or requests.Session()
    
    def is_configured(self) -> bool:
        return bool(self.config.api_key)
    
    def _generate(self, prompt: str, json_response: bool = False) -> str:
        """
        Call the model and return its text.
        
        Raises:
            AssistantError: On HTTP failure or an empty/malformed response
        """
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        if json_response:
            body["generationConfig"] = {"responseMimeType": "application/json"}
        
        url = f"{API_BASE_URL}/{self.config.model}:generateContent"
        
        with tracer.start_as_current_span("assistant.generate") as span:
            span.set_attributes({
                "assistant.model": self.config.model,
                "assistant.json_response": json_response
            })
            try:
                response = self.http.post(
                    url,
                    json=body,
                    headers={"x-goog-api-key": self.config.api_key},
                    timeout=self.config.timeout
                )
                response.raise_for_status()
                payload = response.json()
            except (requests.RequestException, ValueError) as e:
                span.set_attribute("assistant.result", "error")
                raise AssistantError(f"Model request failed: {e}") from e
            
            try:
                text = payload["candidates"][0]["content"]["parts"][0]["text"]
            except (KeyError, IndexError, TypeError):
                text = ""
            
            span.set_attribute("assistant.result", "success" if text else "empty")
            return text
    
    def compose_emergency_message(self, blood_group: str, hospital: str, urgency: str, units: int) -> str:
        """
        Draft a short emergency request description.
        
        Returns:
            Generated description (or title), or a fixed fallback string
        """
        if not self.is_configured():
            return MISSING_KEY_MESSAGE
        
        prompt = EMERGENCY_PROMPT.format(
            blood_group=blood_group,
            hospital=hospital,
            urgency=urgency,
            units=units
        )
        try:
            text = self._generate(prompt, json_response=True)
            if not text:
                return MESSAGE_ERROR
            data = json.loads(text)
            return data.get("description") or data.get("title") or MESSAGE_ERROR
        except (AssistantError, ValueError, AttributeError) as e:
            logger.error(f"Assistant message generation failed: {str(e)}")
            return MESSAGE_FALLBACK
    
    def answer_question(self, question: str) -> str:
        """
        Answer a free-text donation question.
        
        Returns:
            Generated answer, or a fixed fallback string
        """
        if not self.is_configured():
            return MISSING_KEY_ANSWER
        
        try:
            return self._generate(QUESTION_PROMPT.format(question=question)) or ANSWER_EMPTY
        except AssistantError as e:
            logger.error(f"Assistant question failed: {str(e)}")
            return ANSWER_FALLBACK


def create_assistant_service() -> AssistantService:
    """
    Factory function to create the assistant from environment variables.
    
    Returns:
        AssistantService instance
    """
    config = AssistantConfig(
        api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", ""),
        model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        timeout=float(os.getenv("ASSISTANT_TIMEOUT", "15"))
    )
    if not config.api_key:
        logger.warning("No GEMINI_API_KEY configured, assistant will return fallback text")
    return AssistantService(config)
