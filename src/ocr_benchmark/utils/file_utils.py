"""File handling utilities."""

import base64
import mimetypes
import os
import json
from datetime import datetime
from typing import Any, Optional

import requests


def create_results_folder(base_dir: str = "./results", timestamp: Optional[datetime] = None) -> str:
    """Create a timestamped results folder."""
    stamp = (timestamp or datetime.now()).strftime("%Y-%m-%d-%H-%M-%S")
    results_dir = os.path.join(base_dir, stamp)
    os.makedirs(results_dir, exist_ok=True)
    return results_dir


def save_json(data: Any, filepath: str) -> None:
    """Save data to a JSON file."""
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_json(filepath: str) -> Any:
    """Load data from a JSON file."""
    with open(filepath, 'r', encoding='utf-8') as f:
        return json.load(f)


def is_remote(image_ref: str) -> bool:
    return image_ref.startswith(("http://", "https://"))


def load_image_bytes(image_ref: str, timeout: float = 30) -> bytes:
    """Read a document image from a URL or a local path."""
    if is_remote(image_ref):
        response = requests.get(image_ref, timeout=timeout)
        response.raise_for_status()
        return response.content

    with open(image_ref, 'rb') as f:
        return f.read()


def guess_mime_type(image_ref: str) -> str:
    mime_type, _ = mimetypes.guess_type(image_ref.split('?', 1)[0])
    return mime_type or 'image/jpeg'


def encode_image(image_ref: str) -> str:
    """Base64-encode a document image."""
    return base64.b64encode(load_image_bytes(image_ref)).decode('utf-8')
