def mask_token(text: str, token: str) -> str:
    if not token:
        return text
    # Short tokens would be fully revealed by a prefix
    masked = f"{token[:4]}****" if len(token) > 8 else "****"
    return text.replace(token, masked)
