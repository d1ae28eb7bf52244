"""
Payload builders, one per backend protocol family.

All builders take a PromptInput and return fresh structures; the caller's
messages are never modified. Attachments always go onto the last user
message. Without a user message they are left out of the payload.
"""

from typing import List, Dict, Any

from ..models.attachments import ImageAttachment, TextAttachment, BinaryAttachment
from ..models.request import PromptInput


def find_last_user_index(messages: List[Dict[str, Any]]) -> int:
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].get("role") == "user":
            return index
    return -1


def format_text_attachment(attachment: TextAttachment) -> str:
    header = f"Attached file: {attachment.name} ({attachment.mime_type})"
    if attachment.truncated:
        header += " [truncated]"
    return f"{header}\n\n```\n{attachment.content}\n```"


def format_binary_attachment(attachment: BinaryAttachment) -> str:
    return (
        f"Attached file: {attachment.name} ({attachment.mime_type}, {attachment.size} bytes). "
        "Binary content not included."
    )


def _describe(attachment) -> str:
    if isinstance(attachment, TextAttachment):
        return format_text_attachment(attachment)
    return format_binary_attachment(attachment)


def build_openai_messages(prompt: PromptInput) -> List[Dict[str, Any]]:
    """
    Role array with content parts (OpenAI chat completions).

    The last user message becomes a list of parts: its text, then one part
    per attachment (image_url for images, text for everything else).
    """
    out: List[Dict[str, Any]] = []
    if prompt.system_prompt:
        out.append({"role": "system", "content": prompt.system_prompt})
    out.extend(prompt.message_dicts())

    user_index = find_last_user_index(out)
    if not prompt.attachments or user_index == -1:
        return out

    original_text = out[user_index]["content"]
    parts: List[Dict[str, Any]] = []
    if original_text:
        parts.append({"type": "text", "text": original_text})

    for attachment in prompt.attachments:
        if isinstance(attachment, ImageAttachment):
            parts.append({"type": "image_url", "image_url": {"url": attachment.data_url}})
        else:
            parts.append({"type": "text", "text": _describe(attachment)})

    out[user_index] = {**out[user_index], "content": parts}
    return out


def build_anthropic_messages(prompt: PromptInput) -> Dict[str, Any]:
    """
    Role array with a separate system field (Anthropic messages).

    System-role history turns are folded into the system field, since the
    messages array only accepts user and assistant turns.

    Returns:
        {"system": str | None, "messages": [...]}
    """
    system_parts = [prompt.system_prompt] if prompt.system_prompt else []
    out: List[Dict[str, Any]] = []
    for message in prompt.message_dicts():
        if message["role"] == "system":
            if message["content"]:
                system_parts.append(message["content"])
        else:
            out.append(message)

    user_index = find_last_user_index(out)
    if prompt.attachments and user_index != -1:
        original_text = out[user_index]["content"]
        blocks: List[Dict[str, Any]] = [
            {"type": "text", "text": original_text or "User sent attachments:"},
        ]
        for attachment in prompt.attachments:
            if isinstance(attachment, ImageAttachment):
                blocks.append({"type": "text", "text": f"Image: {attachment.name}"})
                blocks.append({
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": attachment.mime_type,
                        "data": attachment.base64,
                    },
                })
            else:
                blocks.append({"type": "text", "text": _describe(attachment)})
        out[user_index] = {**out[user_index], "content": blocks}

    return {
        "system": "\n\n".join(system_parts) if system_parts else None,
        "messages": out,
    }


def build_ollama_messages(prompt: PromptInput) -> List[Dict[str, Any]]:
    """
    Single string content with inline images (Ollama /api/chat).

    Attachments are appended to the last user message as text; image
    base64 goes into that message's `images` array.
    """
    out: List[Dict[str, Any]] = []
    if prompt.system_prompt:
        out.append({"role": "system", "content": prompt.system_prompt})
    out.extend(prompt.message_dicts())

    user_index = find_last_user_index(out)
    if not prompt.attachments or user_index == -1:
        return out

    content = out[user_index]["content"]
    images: List[str] = []
    for attachment in prompt.attachments:
        if isinstance(attachment, ImageAttachment):
            images.append(attachment.base64)
            content += f"\n\n[Image: {attachment.name}]"
        else:
            content += f"\n\n{_describe(attachment)}"

    target = {**out[user_index], "content": content or "User sent attachments."}
    if images:
        target["images"] = images
    out[user_index] = target
    return out


def build_gemini_contents(prompt: PromptInput) -> List[Dict[str, Any]]:
    """
    Gemini `contents`: the system prompt leads as a user turn, every
    non-user role maps to "model". Attachments are not forwarded.
    """
    contents: List[Dict[str, Any]] = []
    if prompt.system_prompt:
        contents.append({"role": "user", "parts": [{"text": prompt.system_prompt}]})
    for message in prompt.messages:
        contents.append({
            "role": "user" if message.role == "user" else "model",
            "parts": [{"text": message.content}],
        })
    return contents
