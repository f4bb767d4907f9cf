"""Prompt templates keyed by artifact type and language"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from autodocops.exceptions import UnsupportedCombinationError, ValidationError
from autodocops.models.artifact import ArtifactType
from autodocops.models.metadata import ExtractionResult
from autodocops.models.project import Language


class PromptTemplate(BaseModel):
    """Instructions plus the layout of the material appended after them"""

    model_config = ConfigDict(frozen=True)

    instructions: str = Field(description="Role and task instructions for the model")
    source_label: str | None = Field(default=None, description="Heading for the source block")
    source_fence: str = Field(default="", description="Code fence language for the source")
    required_params: tuple[str, ...] = Field(
        default=(), description="Caller params that must be set"
    )


_LABELS: dict[Language, dict[str, str]] = {
    Language.SPANISH: {
        "source_code": "Código fuente",
        "schema": "Esquema de base de datos",
        "openapi": "Especificación OpenAPI",
        "metadata": "Resumen de metadatos",
        "base_url": "URL base",
        "package_name": "Nombre del paquete",
        "namespace": "Namespace",
        "context": "Contexto",
        "question": "Pregunta",
    },
    Language.ENGLISH: {
        "source_code": "Source code",
        "schema": "Database schema",
        "openapi": "OpenAPI specification",
        "metadata": "Metadata summary",
        "base_url": "Base URL",
        "package_name": "Package name",
        "namespace": "Namespace",
        "context": "Context",
        "question": "Question",
    },
}


_OPENAPI_ES = """Eres un experto en análisis de APIs .NET y generación de documentación OpenAPI 3.1.

Tu tarea es analizar el código fuente .NET proporcionado y generar una especificación OpenAPI 3.1 completa y precisa.

Instrucciones:
1. Analiza todos los controladores, endpoints, modelos y DTOs
2. Identifica parámetros, tipos de respuesta y códigos de estado HTTP
3. Extrae comentarios XML para las descripciones
4. Genera una especificación OpenAPI 3.1 válida en JSON
5. Incluye ejemplos de request/response cuando sea posible
6. Documenta los esquemas de autenticación si están presentes
7. Usa descripciones claras en español

Formato de salida: JSON válido de OpenAPI 3.1"""

_OPENAPI_EN = """You are an expert in .NET API analysis and OpenAPI 3.1 documentation generation.

Your task is to analyze the provided .NET source code and generate a complete and accurate OpenAPI 3.1 specification.

Instructions:
1. Analyze all controllers, endpoints, models and DTOs
2. Identify parameters, response types and HTTP status codes
3. Extract XML comments for descriptions
4. Generate a valid OpenAPI 3.1 specification in JSON
5. Include request/response examples when possible
6. Document authentication schemes if present
7. Use clear descriptions in English

Output format: Valid OpenAPI 3.1 JSON"""

_GUIDES_ES = """Eres un experto en documentación técnica y creación de guías de uso para APIs.

Tu tarea es generar guías de uso completas y fáciles de seguir basadas en la especificación OpenAPI.

Instrucciones:
1. Crea una guía de inicio rápido
2. Documenta la autenticación y la autorización
3. Proporciona ejemplos de código para cada endpoint
4. Incluye casos de uso comunes
5. Explica el manejo de errores y los códigos de respuesta
6. Agrega buenas prácticas y recomendaciones
7. Usa un lenguaje claro y accesible en español

Formato de salida: Markdown con ejemplos de código y explicaciones detalladas"""

_GUIDES_EN = """You are an expert in technical documentation and API usage guide creation.

Your task is to generate comprehensive and easy-to-follow usage guides based on the OpenAPI specification.

Instructions:
1. Create a quick start guide
2. Document authentication and authorization
3. Provide code examples for each endpoint
4. Include common use cases
5. Explain error handling and response codes
6. Add best practices and recommendations
7. Use clear and accessible language in English

Output format: Markdown with code examples and detailed explanations"""

_SCHEMA_ES = """Eres un experto en análisis de bases de datos SQL Server y documentación de esquemas.

Tu tarea es analizar el esquema de base de datos proporcionado y generar documentación completa.

Instrucciones:
1. Analiza todas las tablas, columnas, tipos de datos y restricciones
2. Identifica las relaciones entre tablas (FK, PK)
3. Documenta índices, triggers, procedimientos almacenados y funciones
4. Extrae los comentarios y descripciones existentes
5. Genera documentación estructurada en formato markdown
6. Incluye estadísticas y metadatos relevantes
7. Usa descripciones claras en español

Formato de salida: Markdown estructurado con secciones claras"""

_SCHEMA_EN = """You are an expert in SQL Server database analysis and schema documentation.

Your task is to analyze the provided database schema and generate comprehensive documentation.

Instructions:
1. Analyze all tables, columns, data types and constraints
2. Identify relationships between tables (FK, PK)
3. Document indexes, triggers, stored procedures and functions
4. Extract existing comments and descriptions
5. Generate structured documentation in markdown format
6. Include relevant statistics and metadata
7. Use clear descriptions in English

Output format: Structured markdown with clear sections"""

_ER_ES = """Eres un experto en diseño de bases de datos y generación de diagramas ER.

Tu tarea es generar un diagrama ER en formato Mermaid basado en el esquema de base de datos.

Instrucciones:
1. Analiza todas las tablas y sus relaciones
2. Identifica las claves primarias y foráneas
3. Determina la cardinalidad de cada relación
4. Genera código Mermaid válido para el diagrama ER
5. Usa nombres descriptivos en español
6. Incluye los tipos de datos principales
7. Organiza el diagrama de manera clara y legible

Formato de salida: Código Mermaid válido para diagrama ER"""

_ER_EN = """You are an expert in database design and ER diagram generation.

Your task is to generate an ER diagram in Mermaid format based on the database schema.

Instructions:
1. Analyze all tables and their relationships
2. Identify primary and foreign keys
3. Determine relationship cardinalities
4. Generate valid Mermaid code for the ER diagram
5. Use descriptive names in English
6. Include main data types
7. Organize the diagram clearly and legibly

Output format: Valid Mermaid code for ER diagram"""

_DICTIONARY_ES = """Eres un experto en documentación de bases de datos y creación de diccionarios de datos.

Tu tarea es generar un diccionario de datos completo basado en el esquema de base de datos.

Instrucciones:
1. Documenta cada tabla con su propósito
2. Lista todas las columnas con tipos, restricciones y descripciones
3. Identifica relaciones y dependencias
4. Incluye índices, triggers y procedimientos almacenados
5. Agrega ejemplos de datos cuando sea útil
6. Organiza la información de manera estructurada
7. Usa terminología clara en español

Formato de salida: Markdown estructurado con tablas y secciones organizadas"""

_DICTIONARY_EN = """You are an expert in database documentation and data dictionary creation.

Your task is to generate a comprehensive data dictionary based on the database schema.

Instructions:
1. Document each table with its purpose
2. List all columns with types, constraints and descriptions
3. Identify relationships and dependencies
4. Include indexes, triggers and stored procedures
5. Add data examples when useful
6. Organize information in a structured manner
7. Use clear terminology in English

Output format: Structured markdown with organized tables and sections"""

_CHAT_ES = """Eres un asistente experto en documentación técnica que ayuda a los desarrolladores a entender APIs y bases de datos.

Tu tarea es responder preguntas específicas usando el contexto de documentación proporcionado.

Instrucciones:
1. Analiza cuidadosamente el contexto proporcionado
2. Responde de manera precisa y útil
3. Incluye ejemplos de código cuando sea relevante
4. Haz referencia a las secciones concretas de la documentación
5. Si no tienes información suficiente, indícalo claramente
6. Mantén un tono profesional pero accesible
7. Responde en español de manera clara y concisa

Formato de salida: Respuesta directa con ejemplos y referencias cuando sea apropiado"""

_CHAT_EN = """You are an expert technical documentation assistant that helps developers understand APIs and databases.

Your task is to answer specific questions using the provided documentation context.

Instructions:
1. Carefully analyze the provided context
2. Respond accurately and helpfully
3. Include code examples when relevant
4. Reference the specific documentation sections you rely on
5. If you don't have sufficient information, clearly say so
6. Maintain a professional but accessible tone
7. Respond in English clearly and concisely

Output format: Direct response with examples and references when appropriate"""

_POSTMAN = """You are an expert in API testing and Postman collection generation.

Your task is to generate a complete Postman collection based on the OpenAPI specification.

Instructions:
1. Create a collection with all endpoints from the OpenAPI spec
2. Include proper request methods, headers and parameters
3. Add example request bodies and query parameters
4. Set up authentication if specified
5. Include tests for common response codes
6. Organize requests in logical folders
7. Add a collection-level variable for the base URL

Output format: Valid Postman Collection v2.1 JSON"""

_TYPESCRIPT_SDK = """You are an expert in TypeScript development and SDK generation.

Your task is to generate a complete TypeScript SDK based on the OpenAPI specification.

Instructions:
1. Generate TypeScript interfaces for all models
2. Create service classes for each endpoint group
3. Include proper error handling and response types
4. Add JSDoc comments for all public methods
5. Use modern TypeScript features (async/await, generics)
6. Include authentication handling
7. Generate a main index file with exports

Output format: Complete TypeScript SDK code with proper structure"""

_CSHARP_SDK = """You are an expert in C# development and SDK generation.

Your task is to generate a complete C# SDK based on the OpenAPI specification.

Instructions:
1. Generate C# classes for all models with proper attributes
2. Create service classes for each endpoint group
3. Include proper error handling and response types
4. Add XML documentation for all public methods
5. Use modern C# features (async/await, nullable reference types)
6. Include authentication handling
7. Generate a proper project structure

Output format: Complete C# SDK code with proper structure and documentation"""


def _bilingual(
    artifact_type: ArtifactType, spanish: str, english: str, **layout: Any
) -> dict[tuple[ArtifactType, Language], PromptTemplate]:
    return {
        (artifact_type, Language.SPANISH): PromptTemplate(instructions=spanish, **layout),
        (artifact_type, Language.ENGLISH): PromptTemplate(instructions=english, **layout),
    }


def _neutral(
    artifact_type: ArtifactType, instructions: str, **layout: Any
) -> dict[tuple[ArtifactType, Language], PromptTemplate]:
    return _bilingual(artifact_type, instructions, instructions, **layout)


DEFAULT_TEMPLATES: dict[tuple[ArtifactType, Language], PromptTemplate] = {
    **_bilingual(
        ArtifactType.OPENAPI_SPEC,
        _OPENAPI_ES,
        _OPENAPI_EN,
        source_label="source_code",
        source_fence="csharp",
    ),
    **_bilingual(
        ArtifactType.USAGE_GUIDE,
        _GUIDES_ES,
        _GUIDES_EN,
        source_label="openapi",
        source_fence="json",
    ),
    **_neutral(
        ArtifactType.POSTMAN_COLLECTION,
        _POSTMAN,
        source_label="openapi",
        source_fence="json",
        required_params=("base_url",),
    ),
    **_neutral(
        ArtifactType.TYPESCRIPT_SDK,
        _TYPESCRIPT_SDK,
        source_label="openapi",
        source_fence="json",
        required_params=("package_name",),
    ),
    **_neutral(
        ArtifactType.CSHARP_SDK,
        _CSHARP_SDK,
        source_label="openapi",
        source_fence="json",
        required_params=("namespace",),
    ),
    **_bilingual(
        ArtifactType.SCHEMA_DOCUMENTATION,
        _SCHEMA_ES,
        _SCHEMA_EN,
        source_label="schema",
        source_fence="sql",
    ),
    **_bilingual(
        ArtifactType.ER_DIAGRAM, _ER_ES, _ER_EN, source_label="schema", source_fence="sql"
    ),
    **_bilingual(
        ArtifactType.DATA_DICTIONARY,
        _DICTIONARY_ES,
        _DICTIONARY_EN,
        source_label="schema",
        source_fence="sql",
    ),
    **_bilingual(
        ArtifactType.CHAT_ANSWER,
        _CHAT_ES,
        _CHAT_EN,
        required_params=("context", "question"),
    ),
}


class PromptEngine:
    """Deterministic prompt rendering for (artifact type, language) pairs"""

    def __init__(
        self, templates: dict[tuple[ArtifactType, Language], PromptTemplate] | None = None
    ):
        self.templates = templates if templates is not None else DEFAULT_TEMPLATES

    def get_template(
        self, artifact_type: ArtifactType | str, language: Language | str
    ) -> PromptTemplate:
        """
        Look up the template for a combination

        Raises:
            UnsupportedCombinationError: If the artifact type, the language or
                their combination is unknown
        """
        try:
            key = (ArtifactType(artifact_type), Language(language))
        except ValueError as e:
            raise UnsupportedCombinationError(str(artifact_type), str(language)) from e

        template = self.templates.get(key)
        if template is None:
            raise UnsupportedCombinationError(key[0].value, key[1].value)
        return template

    def supports(self, artifact_type: ArtifactType | str, language: Language | str) -> bool:
        try:
            self.get_template(artifact_type, language)
        except UnsupportedCombinationError:
            return False
        return True

    def validate_params(
        self,
        artifact_type: ArtifactType | str,
        language: Language | str,
        extra_params: dict[str, Any] | None = None,
    ) -> PromptTemplate:
        """Check the combination and required params without rendering"""
        template = self.get_template(artifact_type, language)
        extra_params = extra_params or {}
        missing = [
            name
            for name in template.required_params
            if not isinstance(extra_params.get(name), str) or not extra_params[name].strip()
        ]
        if missing:
            raise ValidationError(f"Missing required parameter(s): {', '.join(missing)}")
        return template

    def render(
        self,
        artifact_type: ArtifactType | str,
        language: Language | str,
        source_text: str = "",
        metadata: ExtractionResult | None = None,
        extra_params: dict[str, Any] | None = None,
    ) -> str:
        """
        Render the full prompt for one generation request

        Args:
            artifact_type: Kind of artifact to generate
            language: Output language (es, en)
            source_text: Source code, DDL or OpenAPI text to document
            metadata: Extracted metadata; its summary is included when given
            extra_params: base_url, package_name, namespace, question, context

        Returns:
            The prompt text
        """
        template = self.validate_params(artifact_type, language, extra_params)
        extra_params = extra_params or {}
        labels = _LABELS[Language(language)]

        sections = [template.instructions]

        if ArtifactType(artifact_type) == ArtifactType.CHAT_ANSWER:
            sections.append(f"{labels['context']}:\n{extra_params['context']}")
            sections.append(f"{labels['question']}: {extra_params['question']}")
            return "\n\n".join(sections)

        for name in template.required_params:
            sections.append(f"{labels[name]}: {extra_params[name]}")

        if metadata is not None:
            sections.append(f"{labels['metadata']}:\n{metadata.summary()}")

        if template.source_label is not None:
            sections.append(
                f"{labels[template.source_label]}:\n```{template.source_fence}\n{source_text}\n```"
            )

        return "\n\n".join(sections)
