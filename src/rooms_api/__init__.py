"""Rooms API: ephemeral file sharing rooms over Cloudinary or UploadThing."""
