"""
Application package for the gym/studio management backend.

This package contains:
- Shared configuration, validators and formula utilities (`gymstudio.core`)
- Supabase REST/auth/storage/realtime integration (`gymstudio.db`)
- Per-entity data services (`gymstudio.services`)
- PDF, CSV/XLSX and QR artefacts (`gymstudio.documents`)
- Staff Telegram bot and automation scheduler (`gymstudio.bot`)
"""
