"""Note matching - link calendar meetings to note documents"""
