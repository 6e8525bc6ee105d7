"""Domain layer: records, validation rules and errors"""
