"""VoiceScribe: WhatsApp voice message transcription service."""
