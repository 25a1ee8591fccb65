"""HTTP surface of the reader: FastAPI app, session store and schemas."""
