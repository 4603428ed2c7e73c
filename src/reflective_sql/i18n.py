"""Localized message dictionaries.

Holds the prompt templates sent to the completion service, the section
headings the prompt assembler inserts, and the fallback responses shown
to users. Templates use {name} placeholders that prompts.fill_template
substitutes literally.

Example:
    >>> messages = Messages("es")
    >>> messages.get("responses", "no_results")
    'No se encontraron datos que coincidan con los criterios de búsqueda.'
"""
from typing import Dict

from .config import Language
from .errors import ConfigurationError


MESSAGES: Dict[str, Dict[str, Dict[str, str]]] = {
    "en": {
        "prompts": {
            "system_sql": (
                "You are an expert in SQL and PostgreSQL databases. "
                "You only ever write read-only queries."
            ),
            "system_explain": (
                "You are an expert data analysis assistant who explains "
                "query results to business users."
            ),
            "translate_sql": """Translate the natural language question into a single SQL query.

IMPORTANT RULES:
1. ONLY generate read-only SELECT queries
2. DO NOT use INSERT, UPDATE, DELETE, DROP, CREATE, ALTER or TRUNCATE
3. Use only the tables and columns listed in the schema
4. Generate valid SQL for PostgreSQL
5. Add a LIMIT clause unless the query aggregates
6. Respond ONLY with the SQL query, no additional explanations

Database schema:
{schema}

{relationships}{business_context}{examples}{custom_instructions}Question: {question}

SQL:""",
            "fix_sql": """A SQL query failed and must be corrected.

ERROR FOUND: {error}
ORIGINAL QUESTION: {question}
FAILED QUERY: {sql}

Database schema:
{schema}

{relationships}{business_context}{examples}INSTRUCTIONS:
1. Analyze the error and its cause
2. Fix the query while keeping the original intent
3. Make sure it is a valid read-only SELECT query
4. Use only table and column names that exist in the schema
5. Answer in this format:

REASONING: <what caused the error and how you fixed it>
CORRECTED SQL: <the corrected query>""",
            "explain": """Explain the results of this SQL query in clear, natural language.

INSTRUCTIONS:
1. Explain simply what the results show
2. Summarize when there are multiple records
3. Mention important numeric values
4. Keep the answer concise
5. Respond in English

SQL query executed: {sql}

Results: {results}

Explanation:""",
            "explain_detailed": """Provide a detailed, professional analysis of these SQL results.

INSTRUCTIONS:
1. Analyze the data thoroughly
2. Identify relevant patterns, trends or insights
3. Provide business context and meaning
4. Use markdown to organize the information
5. Include important statistics or metrics
6. Respond in English

SQL query: {sql}
Results: {results}

Detailed analysis:""",
        },
        "sections": {
            "relationships": "Table relationships:",
            "business_context": "Business context:",
            "examples": "Examples:",
            "custom_instructions": "Additional instructions:",
            "example_question": "Question",
            "example_sql": "SQL",
            "table": "Table",
            "description": "Description",
            "primary_key": "primary key",
            "not_null": "not null",
        },
        "responses": {
            "no_results": "No data found matching the search criteria.",
            "query_completed": "Query completed successfully.",
            "query_failed": "Could not complete this request after several correction attempts.",
            "execution_failed": "The query could not be executed: {error}",
            "detailed_unavailable": "A detailed analysis is not available for these results.",
            "reasoning_not_provided": "Reasoning not provided",
        },
    },
    "es": {
        "prompts": {
            "system_sql": (
                "Eres un experto en SQL y bases de datos PostgreSQL. "
                "Solo escribes consultas de solo lectura."
            ),
            "system_explain": (
                "Eres un asistente experto en análisis de datos que explica "
                "resultados de consultas a usuarios de negocio."
            ),
            "translate_sql": """Traduce la pregunta en lenguaje natural a una única consulta SQL.

REGLAS IMPORTANTES:
1. SOLO genera consultas SELECT de solo lectura
2. NO uses INSERT, UPDATE, DELETE, DROP, CREATE, ALTER ni TRUNCATE
3. Usa solo las tablas y columnas del esquema
4. Genera SQL válido para PostgreSQL
5. Agrega una cláusula LIMIT salvo que la consulta agregue datos
6. Responde SOLO con la consulta SQL, sin explicaciones adicionales

Esquema de la base de datos:
{schema}

{relationships}{business_context}{examples}{custom_instructions}Pregunta: {question}

SQL:""",
            "fix_sql": """Una consulta SQL falló y debe corregirse.

ERROR ENCONTRADO: {error}
PREGUNTA ORIGINAL: {question}
CONSULTA FALLIDA: {sql}

Esquema de la base de datos:
{schema}

{relationships}{business_context}{examples}INSTRUCCIONES:
1. Analiza el error y su causa
2. Corrige la consulta manteniendo la intención original
3. Asegúrate de que sea una consulta SELECT válida de solo lectura
4. Usa solo nombres de tablas y columnas que existan en el esquema
5. Responde con este formato:

RAZONAMIENTO: <qué causó el error y cómo lo corregiste>
SQL CORREGIDO: <la consulta corregida>""",
            "explain": """Explica los resultados de esta consulta SQL en lenguaje natural, claro y comprensible.

INSTRUCCIONES:
1. Explica qué muestran los resultados de manera simple
2. Haz un resumen si hay múltiples registros
3. Menciona los datos numéricos importantes
4. Mantén la respuesta concisa
5. Responde en español

Consulta SQL ejecutada: {sql}

Resultados obtenidos: {results}

Explicación:""",
            "explain_detailed": """Proporciona un análisis detallado y profesional de los resultados SQL.

INSTRUCCIONES:
1. Haz un análisis completo de los datos
2. Identifica patrones, tendencias o insights relevantes
3. Proporciona contexto y significado empresarial
4. Usa formato markdown para organizar la información
5. Incluye estadísticas o métricas importantes
6. Responde en español

Consulta SQL: {sql}
Resultados: {results}

Análisis detallado:""",
        },
        "sections": {
            "relationships": "Relaciones entre tablas:",
            "business_context": "Contexto del negocio:",
            "examples": "Ejemplos:",
            "custom_instructions": "Instrucciones adicionales:",
            "example_question": "Pregunta",
            "example_sql": "SQL",
            "table": "Tabla",
            "description": "Descripción",
            "primary_key": "clave primaria",
            "not_null": "no nulo",
        },
        "responses": {
            "no_results": "No se encontraron datos que coincidan con los criterios de búsqueda.",
            "query_completed": "Consulta completada exitosamente.",
            "query_failed": "No fue posible completar esta solicitud tras varios intentos de corrección.",
            "execution_failed": "No se pudo ejecutar la consulta: {error}",
            "detailed_unavailable": "No hay un análisis detallado disponible para estos resultados.",
            "reasoning_not_provided": "Razonamiento no proporcionado",
        },
    },
}


class Messages:
    """Message lookup for one language, switchable at runtime."""

    def __init__(self, language: Language = "en"):
        self.set_language(language)

    @property
    def language(self) -> Language:
        return self._language

    def set_language(self, language: Language) -> None:
        """Switch the active dictionary.

        Raises:
            ConfigurationError: If the language has no dictionary
        """
        if language not in MESSAGES:
            raise ConfigurationError(
                f"Unsupported language: {language}",
                details={"supported": sorted(MESSAGES)}
            )
        self._language = language

    def get(self, category: str, key: str) -> str:
        """Return the message for category/key in the active language.

        Raises:
            ConfigurationError: If the key does not exist
        """
        try:
            return MESSAGES[self._language][category][key]
        except KeyError:
            raise ConfigurationError(
                f"Missing message {category}.{key} for language {self._language}",
                details={"category": category, "key": key, "language": self._language}
            )
