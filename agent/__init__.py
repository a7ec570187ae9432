"""
Agent — Core del bot de soporte por SMS.

Convierte cada evento entrante del proveedor de mensajería en:
- Una respuesta (base de conocimiento o LLM de fallback)
- Un ticket de escalamiento opcional cuando hace falta un humano
- Un roster de conversación sincronizado (cliente, bot, agente)
"""
